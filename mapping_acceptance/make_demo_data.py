#!/usr/bin/env python3
"""
make_demo_data.py
=================

Generate a synthetic micro-scenario data set that can stand in for real
survey exports when demonstrating the analysis.

OUTPUTS
-------
Writes to <outdir>:
  demo_responses.csv / demo_responses.pkl  wide table, same schema as a real export
  demo_topics.csv                          topic lookup with placeholder labels (--write-topics)
  correlation_matrix.csv                   the validated correlation matrix used for sampling
  log.txt                                  run parameters and seed

USAGE
-----
mapping-acceptance-demo --outdir demo --topics 12 --participants 100 --seed 7 --write-topics
mapping-acceptance-analyse --responses demo/demo_responses.csv --topics demo/demo_topics.csv --outdir out
"""
from __future__ import annotations

import argparse
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from .config import SYNTHETIC_DEFAULTS
from .synthetic import generate_dataset, generate_topics, response_columns


def main(argv: Optional[List[str]] = None) -> None:
    d = SYNTHETIC_DEFAULTS
    ap = argparse.ArgumentParser(description="Generate synthetic micro-scenario survey data.")
    ap.add_argument("--outdir", default="demo", help="Output directory.")
    ap.add_argument("--topics", type=int, default=d["n_topics"], help="Number of topics.")
    ap.add_argument("--participants", type=int, default=d["n_participants"], help="Number of participants.")
    ap.add_argument("--seed", type=int, default=None, help="Random seed.")
    ap.add_argument("--max-attempts", type=int, default=d["max_attempts"],
                    help="Attempts to build a valid correlation matrix.")
    ap.add_argument("--cross", type=float, default=d["cross_block_constant"],
                    help="Correlation between the two dimension blocks.")
    ap.add_argument("--sd", type=float, default=d["target_sd"], help="Latent standard deviation.")
    ap.add_argument("--covariate-r", type=float, default=d["covariate_r"],
                    help="Target correlation of the covariate with its anchor columns.")
    ap.add_argument("--no-covariate", dest="covariate", action="store_false", help="Skip the synthetic covariate.")
    ap.add_argument("--write-topics", action="store_true", help="Also write a placeholder topic lookup.")
    ap.set_defaults(covariate=True)
    args = ap.parse_args(argv)

    seed = args.seed if args.seed is not None else int(np.random.SeedSequence().entropy % (2 ** 32))
    outdir = Path(args.outdir).resolve()
    outdir.mkdir(parents=True, exist_ok=True)

    wide, corr = generate_dataset(
        n_topics=args.topics,
        n_participants=args.participants,
        seed=seed,
        cross_block_constant=args.cross,
        max_attempts=args.max_attempts,
        target_sd=args.sd,
        covariate_columns=d["covariate_columns"] if args.covariate else None,
        covariate_r=args.covariate_r,
    )

    wide.to_csv(outdir / "demo_responses.csv", index=False)
    wide.to_pickle(outdir / "demo_responses.pkl")
    labels = response_columns(args.topics)
    pd.DataFrame(corr, index=labels, columns=labels).to_csv(outdir / "correlation_matrix.csv")
    if args.write_topics:
        generate_topics(args.topics).to_csv(outdir / "demo_topics.csv", index=False)

    log_lines = [
        f"Run timestamp: {datetime.now(timezone.utc).isoformat()}",
        f"Seed: {seed}",
        f"Topics: {args.topics}",
        f"Participants: {args.participants}",
        f"Cross-block correlation: {args.cross}",
        f"Latent SD: {args.sd}",
        f"Covariate: {d['covariate_name'] if args.covariate else '(none)'}",
    ]
    (outdir / "log.txt").write_text("\n".join(log_lines))
    print(f"Wrote {wide.shape[0]} synthetic participants to {outdir}")


if __name__ == "__main__":
    main()
