from .aggregate import aggregate, topic_factor, user_factor
from .errors import ConfigError, ConstructionError, DomainError, MappingAcceptanceError, NumericError
from .synthetic import build_correlation_matrix, generate_dataset, sample_responses
from .transform import parse_column_name, rescale, to_long

__version__ = "0.1.0"
