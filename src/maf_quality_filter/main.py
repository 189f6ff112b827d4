"""
Main entry point for the MAF Quality Filter command-line tool.
This module wires the MAF reader, the quality filter and the writers together,
then produces the run report.
"""

import argparse
import logging
import sys
from pathlib import Path

from src.maf_quality_filter.core.config import FilterConfig, ConfigurationError
from src.maf_quality_filter.core.iterators import QualityFilterIterator, DiscardedBlockIterator
from src.maf_quality_filter.parsers.maf_parser import open_maf
from src.maf_quality_filter.utils.logging import setup_logging
from src.maf_quality_filter.visualization.report_generator import (
    MAF_HEADER,
    format_maf_block,
    write_maf,
    write_filtered_maf,
    generate_report
)

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="MAF Quality Filter: remove low-quality regions from multiple alignment blocks.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Mandatory
    parser.add_argument("-i", "--maf", required=True, help="Input alignment file (MAF) with 'q' quality lines")
    parser.add_argument("-s", "--species", required=True, nargs="+",
                        help="Species whose quality scores are used; blocks missing any of them are not filtered")

    # Optional
    parser.add_argument("-o", "--output", default="./output", help="Output directory for results")
    parser.add_argument("--filter-log", help="File receiving one line per filtering decision")
    parser.add_argument("--no-report", action="store_true", help="Skip the HTML report")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug messages on the console")

    # Configurable
    parser.add_argument("--window-size", type=int, default=10, help="Number of columns in the sliding window")
    parser.add_argument("--step", type=int, default=1, help="Number of columns the window moves at each step")
    parser.add_argument("--min-quality", type=float, default=0.0, help="Minimum mean quality of a window")
    parser.add_argument("--keep-discarded", action="store_true",
                        help="Write removed regions to discarded.maf")

    args = parser.parse_args(argv)

    output_dir = Path(args.output)
    log_listener = setup_logging(output_dir, args.verbose)

    logger = logging.getLogger(__name__)
    filter_log = None
    try:
        logger.info("Starting MAF Quality Filter...")
        config = FilterConfig(
            species=args.species,
            window_size=args.window_size,
            step=args.step,
            min_quality=args.min_quality,
            keep_discarded_blocks=args.keep_discarded
        )
        run_parameters = {"input": args.maf, **config.to_dict()}
        logger.info(f"Parameters: {run_parameters}")

        log_sink = None
        if args.filter_log:
            filter_log = open(args.filter_log, "w", encoding="utf-8")
            def log_sink(message):
                filter_log.write(message + "\n")

        blocks = QualityFilterIterator(open_maf(args.maf), config, log_sink=log_sink, record_summaries=True)

        filtered_path = output_dir / "filtered.maf"
        if config.keep_discarded_blocks:
            discarded_path = output_dir / "discarded.maf"
            with open(filtered_path, "w", encoding="utf-8") as kept_out, \
                    open(discarded_path, "w", encoding="utf-8") as trash_out:
                kept_out.write(MAF_HEADER)
                kept_widths = []

                def write_kept(block):
                    kept_out.write(format_maf_block(block))
                    kept_widths.append(block.number_of_sites)

                discarded_widths = write_maf(DiscardedBlockIterator(blocks, on_kept=write_kept), trash_out)
            logger.info(f"Wrote {len(kept_widths)} blocks ({sum(kept_widths)} columns) to {filtered_path}")
            logger.info(f"Wrote {len(discarded_widths)} discarded blocks "
                        f"({sum(discarded_widths)} columns) to {discarded_path}")
        else:
            write_filtered_maf(blocks, filtered_path)

        logger.info(f"Input blocks processed: {blocks.blocks_read}")

        logger.info("Generating reports...")
        generate_report(blocks.summaries, output_dir, run_parameters, html=not args.no_report)

        logger.info(f"Pipeline complete. Results saved in {output_dir}")
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Critical failure: {e}")
        sys.exit(1)
    finally:
        if filter_log is not None:
            filter_log.close()
        log_listener.stop()

if __name__ == "__main__":
    main()
