# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path


class JsonFormatter(logging.Formatter):
	"""One compact JSON object per record, for build logs that get machine-parsed."""

	def format(self, record: logging.LogRecord) -> str:
		return json.dumps(
			{
				"time": int(time.time() * 1000),
				"level": record.levelname,
				"logger": record.name,
				"message": record.getMessage(),
			},
			separators=(",", ":"),
		)


def configure_logging(*, verbose: bool = False, log_file: Path | None = None) -> None:
	"""
	Human-readable messages on stderr (stdout carries reports); optional JSON lines file.

	Safe to call more than once: previously installed staticlink handlers are replaced.
	"""
	root = logging.getLogger("staticlink")
	for h in list(root.handlers):
		root.removeHandler(h)
		h.close()
	root.setLevel(logging.DEBUG if verbose else logging.INFO)
	root.propagate = False

	stream = logging.StreamHandler(sys.stderr)
	stream.setFormatter(logging.Formatter("staticlink: %(message)s"))
	stream.setLevel(logging.DEBUG if verbose else logging.WARNING)
	root.addHandler(stream)

	if log_file is not None:
		log_file.parent.mkdir(parents=True, exist_ok=True)
		fh = logging.FileHandler(log_file, "w", encoding="utf-8")
		fh.setFormatter(JsonFormatter())
		root.addHandler(fh)
