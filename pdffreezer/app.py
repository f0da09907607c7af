"""Application service exposing the operations used by front-ends."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from .config import AppConfig, ConfigManager, user_config_dir
from .counter import SequenceManager
from .exceptions import (
    ConfigError,
    CounterError,
    InvalidInputError,
    PDFFreezerError,
)
from .pipeline import DEFAULT_PREFIX, ConversionJob, ConversionResult, Pipeline
from .rasterizer import GhostscriptRasterizer, Rasterizer
from .settings import DEFAULT_CORNER, DEFAULT_TIER
from .utils import configure_file_logging, get_logger

DEFAULT_SUFFIX = "_frozen"


def output_path_for(input_path: str | os.PathLike[str], suffix: str, overwrite: bool) -> Path:
    """Where the frozen copy of *input_path* is written.

    Overwrite mode targets the input itself; otherwise ``<stem><suffix>.pdf``
    next to it.
    """

    source = Path(input_path)
    if overwrite:
        return source
    return source.with_name(f"{source.stem}{suffix}.pdf")


class FreezerApp:
    """Wires logging, counter, configuration and pipeline together.

    Startup problems with any of these are logged and leave the component
    unavailable instead of failing construction; operations that need a
    missing component raise a descriptive error.
    """

    def __init__(
        self,
        config_dir: str | os.PathLike[str] | None = None,
        *,
        rasterizer: Rasterizer | None = None,
        log_to_file: bool = True,
    ) -> None:
        self.logger = get_logger("pdffreezer")
        self._log_handler: logging.Handler | None = None

        directory: Path | None = None
        try:
            directory = Path(config_dir).expanduser().resolve() if config_dir is not None else user_config_dir()
        except ConfigError as exc:
            self.logger.error("Failed to resolve config dir: %s", exc)
        self.config_dir = directory

        if directory is not None and log_to_file:
            try:
                self._log_handler = configure_file_logging(directory)
            except OSError as exc:
                self.logger.error("Failed to init file logger: %s", exc)
        self.logger.info("App starting...")

        self.counter: SequenceManager | None = None
        self.config: ConfigManager | None = None
        if directory is not None:
            try:
                self.counter = SequenceManager(directory)
            except CounterError as exc:
                self.logger.error("Failed to init counter: %s", exc)
            try:
                self.config = ConfigManager.create(directory)
            except ConfigError as exc:
                self.logger.error("Failed to init config: %s", exc)

        self.rasterizer = rasterizer or GhostscriptRasterizer()
        self.pipeline = Pipeline(self.counter, self.rasterizer) if self.counter is not None else None

    def close(self) -> None:
        """Detach the file log handler added by this instance."""

        if self._log_handler is not None:
            self.logger.removeHandler(self._log_handler)
            self._log_handler.close()
            self._log_handler = None

    def __enter__(self) -> "FreezerApp":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def check_dependencies(self) -> str:
        try:
            return self.rasterizer.check_dependencies()
        except PDFFreezerError as exc:
            self.logger.error("CheckDeps failed: %s", exc)
            raise

    def process_file(
        self,
        input_path: str | os.PathLike[str],
        *,
        overlay: bool | None = None,
        prefix: str | None = None,
        position: str | None = None,
        suffix: str | None = None,
        overwrite: bool | None = None,
        compression: str | None = None,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Freeze *input_path* and return the output path.

        Each ``None`` or empty override falls back to the saved configuration
        and then to the built-in default.
        """

        if not input_path or not str(input_path).strip():
            raise InvalidInputError("no input file selected")
        self.logger.info("Processing file: %s", input_path)

        result = self.run_job(
            self.build_job(
                input_path,
                overlay=overlay,
                prefix=prefix,
                position=position,
                suffix=suffix,
                overwrite=overwrite,
                compression=compression,
            ),
            timeout=timeout,
            cancel_event=cancel_event,
        )
        return result.output_path

    def build_job(
        self,
        input_path: str | os.PathLike[str],
        *,
        overlay: bool | None = None,
        prefix: str | None = None,
        position: str | None = None,
        suffix: str | None = None,
        overwrite: bool | None = None,
        compression: str | None = None,
    ) -> ConversionJob:
        """Resolve overrides against the saved settings into a job."""

        config = self.get_config()
        overwrite_mode = config.overwrite_mode if overwrite is None else overwrite
        output_path = output_path_for(
            input_path,
            suffix or config.file_suffix or DEFAULT_SUFFIX,
            overwrite_mode,
        )
        return ConversionJob.create(
            input_path,
            output_path,
            overlay=config.overlay if overlay is None else overlay,
            prefix=prefix or config.prefix or DEFAULT_PREFIX,
            corner=position or config.overlay_position or DEFAULT_CORNER,
            tier=compression or config.compression_level or DEFAULT_TIER,
        )

    def run_job(
        self,
        job: ConversionJob,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ConversionResult:
        if self.pipeline is None:
            raise CounterError("counter not initialized")
        try:
            result = self.pipeline.process(job, timeout=timeout, cancel_event=cancel_event)
        except PDFFreezerError as exc:
            self.logger.error("Process failed: %s", exc)
            raise
        self.logger.info("Success: %s", result.output_path)
        return result

    def get_current_number(self) -> int:
        """Return the number the next job will be stamped with."""

        return self._require_counter().get_current() + 1

    def set_number_override(self, value: int) -> None:
        """Make *value* the next number issued."""

        counter = self._require_counter()
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise InvalidInputError("number must be >= 1")
        self.logger.info("Counter override to: %d", value)
        counter.set_override(value - 1)

    def unlock_counter(self, *, force: bool = False) -> None:
        counter = self._require_counter()
        if force:
            counter.force_unlock()
        else:
            counter.unlock()

    def get_config(self) -> AppConfig:
        if self.config is None:
            return AppConfig()
        return self.config.snapshot()

    def set_prefix(self, prefix: str) -> None:
        self.logger.info("Prefix updated to: %s", prefix)
        self._require_config().update_prefix(prefix)

    def set_overlay(self, enabled: bool) -> None:
        self.logger.info("Overlay %s", "enabled" if enabled else "disabled")
        self._require_config().update_overlay(enabled)

    def set_overlay_position(self, position: str) -> None:
        self.logger.info("Position updated to: %s", position)
        self._require_config().update_overlay_position(position)

    def set_compression_level(self, level: str) -> None:
        self.logger.info("Compression level updated to: %s", level)
        self._require_config().update_compression_level(level)

    def set_file_suffix(self, suffix: str) -> None:
        self.logger.info("File suffix updated to: %s", suffix)
        self._require_config().update_file_suffix(suffix)

    def set_overwrite_mode(self, enabled: bool) -> None:
        self.logger.info("Overwrite mode %s", "enabled" if enabled else "disabled")
        self._require_config().update_overwrite_mode(enabled)

    def _require_counter(self) -> SequenceManager:
        if self.counter is None:
            raise CounterError("counter not initialized")
        return self.counter

    def _require_config(self) -> ConfigManager:
        if self.config is None:
            raise ConfigError("config not initialized")
        return self.config


__all__ = ["DEFAULT_SUFFIX", "FreezerApp", "output_path_for"]
