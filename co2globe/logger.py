import logging
import os
import sys

from tqdm.auto import tqdm


class TqdmHandler(logging.StreamHandler):
	def emit(self, record):
		try:
			msg = self.format(record)
			tqdm.write(msg, file=self.stream)
		except Exception:
			self.handleError(record)


def get_logger(name: str = "co2globe") -> logging.Logger:
	logger = logging.getLogger(name)
	if logger.handlers:
		return logger
	logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
	handler = TqdmHandler(stream=sys.stdout)
	formatter = logging.Formatter(
		"[%(asctime)s] %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
	)
	handler.setFormatter(formatter)
	logger.addHandler(handler)
	return logger
