#!/usr/bin/env python3
"""
Script to convert a text file of raw field reports (one per line) into
SITREP lines with threat scores.

Usage:
    python scripts/batch_convert.py INPUT [--output FILE] [--save]
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from intelsuite.data.processor import ReportStore
from intelsuite.data.schemas import ValidatedReport
from intelsuite.intel.report_parser import ReportParser
from intelsuite.intel.tables import ConfigurationTables, SqlConfigurationStore
from intelsuite.models.threat_scorer import ThreatScorer

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Batch-convert raw reports to SITREPs")
    parser.add_argument("input", type=str, help="Text file with one raw report per line")
    parser.add_argument("--output", type=str, default=None, help="Output file for JSON results")
    parser.add_argument("--save", action="store_true", help="Also store the results in the validated log")
    args = parser.parse_args()

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {input_path}")
        sys.exit(1)

    tables = ConfigurationTables(SqlConfigurationStore()).load()
    report_parser = ReportParser(tables)
    scorer = ThreatScorer()

    text = input_path.read_text()
    raw_lines = [line.strip() for line in text.splitlines() if line.strip()]
    results = report_parser.batch_convert(text)
    logger.info(f"Converted {len(results)} reports from {input_path}")

    output = []
    for r in results:
        threat = scorer.score(r.analysis)
        output.append({
            "report": r.report,
            "analysis": r.analysis.model_dump(),
            "threat": threat.model_dump(),
        })

    if args.save:
        store = ReportStore()
        try:
            base = datetime.now()
            saved = 0
            for i, (raw, r) in enumerate(zip(raw_lines, results)):
                # Log entries are keyed by timestamp
                report = ValidatedReport(
                    timestamp=base + timedelta(milliseconds=i),
                    raw_input=raw,
                    output=r.report,
                    analysis=r.analysis,
                )
                saved += store.save(report)
            logger.info(f"Saved {saved}/{len(results)} reports to the validated log")
        finally:
            store.close()

    if args.output:
        with open(args.output, "w") as f:
            json.dump(output, f, indent=2)
        logger.info(f"Results written to {args.output}")
    else:
        for item in output:
            print(f"[{item['threat']['level']:>6}] {item['report']}")


if __name__ == "__main__":
    main()
