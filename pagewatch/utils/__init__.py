"""Logging helpers shared by every pipeline stage."""
from pagewatch.utils.logger import LayerLogger, end_run, get_logger, get_run_id, start_run

__all__ = ["LayerLogger", "end_run", "get_logger", "get_run_id", "start_run"]
