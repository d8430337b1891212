#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from pathlib import Path

from btc_signal_engine.aggregator import SignalAggregator
from btc_signal_engine.codec import to_dict
from btc_signal_engine.logging_config import configure_logging
from btc_signal_engine.metrics import SignalInput
from btc_signal_engine.settings import settings


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Aggregate category inputs into an overall market signal")
    p.add_argument("--input-json", default="data/signal_input.json")
    p.add_argument("--format", choices=["json", "text"], default="json")
    return p.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging(settings.log_level)

    data = SignalInput.from_dict(json.loads(Path(args.input_json).read_text(encoding="utf-8")))
    signal = SignalAggregator().aggregate(data)

    if args.format == "text":
        print(SignalAggregator.format_signal(signal))
    else:
        print(json.dumps(to_dict(signal)))


if __name__ == "__main__":
    main()
