"""
Logging utilities for MAF Quality Filter.
Sets up multi-level logging to console and file.
"""

import logging
import queue
import sys
from pathlib import Path
from logging.handlers import QueueHandler, QueueListener

def setup_logging(output_dir: Path, verbose: bool = False):
    """
    Setup logging to both stdout (INFO, or DEBUG if verbose) and log.txt (DEBUG) in output directory.
    Records are funnelled through a queue so that file writes happen off the filtering loop.

    :param output_dir: Directory to save log.txt.
    :param verbose: Whether to also show DEBUG records on the console.
    :return: The QueueListener, to be stopped when the run ends.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    log_file = output_dir / "log.txt"

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    log_queue = queue.Queue(-1)

    listener = QueueListener(log_queue, console_handler, file_handler, respect_handler_level=True)
    listener.start()

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    # The queue handler is the only root handler
    for h in root.handlers[:]:
        root.removeHandler(h)
    root.addHandler(QueueHandler(log_queue))

    root.info(f"Logging initialized. Log file: {log_file}")

    return listener
