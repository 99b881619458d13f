import logging

from easyfix.settings.config_loader import get_settings


class CustomLogger:

    @classmethod
    def get_logger(
        cls,
        name,
        generate_log_files=False,
        file_level=logging.DEBUG,
        console_level=logging.WARNING,
    ):
        """
        Return a logger for an easy-fix component.

        Parameters:
            name (str): The name of the logger, usually the module's __name__.
            generate_log_files (bool): Whether to also write records to the configured log file.
            file_level (int): The level used by the file handler.
            console_level (int): The level used by the console handler.

        Returns:
            logging.Logger: The logger object.

        Note:
            Fixture engines run inside other people's test suites, so the console handler only
            reports warnings and above by default. Captures and replays are logged at info level
            and land in the log file when generate_log_files is set. Handlers are installed once
            per logger name.

        Example:
            logger = CustomLogger.get_logger(__name__)
            logger.warning("Recorded fingerprint differs from the current call")
        """
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)

        if not logger.handlers:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

            if generate_log_files:
                log_file_path = get_settings().get("default").get("log_file", "easyfix.log")
                file_handler = logging.FileHandler(log_file_path, mode="a")
                file_handler.setLevel(file_level)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)

            stream_handler = logging.StreamHandler()
            stream_handler.setLevel(console_level)
            stream_handler.setFormatter(formatter)
            logger.addHandler(stream_handler)

            # Keep records away from the root logger so they are not printed twice
            logger.propagate = False

        return logger
