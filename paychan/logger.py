""" Logger module which when imported changes the default logger class to ClickLogger

    The paychan command line tool prints to the console with click.echo() &
    click.style(). Importing `paychan.logger` changes the default class created during
    `logging.getLogger()` to ClickLogger and echoes records of the `paychan` logger.
"""
# standard python imports
import logging

# 3rd party imports
import click


class ClickLogFormatter(logging.Formatter):
    """ Styles messages by calling click.style() """

    # supported click styles
    STYLES = ("fg", "bg", "bold", "dim", "underline", "reverse", "reset", "blink")

    def format(self, record):
        """ Formats the record message by using click.style()

            The record will have attributes set to it when a user logs a message
            with any kwargs given. This function looks for any attributes that
            are in STYLES and styles the message with them.

        Args:
            record (logging.LogRecord): record which gets styled with click.style()

        Returns:
            str: the styled message
        """
        message = record.getMessage()

        kwargs = dict()
        for kwarg_name in self.STYLES:
            if hasattr(record, kwarg_name):
                kwargs[kwarg_name] = getattr(record, kwarg_name)

        if kwargs:
            message = click.style(message, **kwargs)

        return message


class ClickLogHandler(logging.Handler):
    """ Logs messages using click.echo() """

    ECHO_KWARGS = ("nl", "err", "color", "file")

    def emit(self, record):
        """ Echos the formatted record by using click.echo()

            Any attribute of the record named in ECHO_KWARGS is passed along
            to click.echo().

        Args:
            record (logging.LogRecord): record which gets echoed with click.echo()
        """
        try:
            message = self.format(record)

            kwargs = dict()
            for kwarg_name in self.ECHO_KWARGS:
                if hasattr(record, kwarg_name):
                    kwargs[kwarg_name] = getattr(record, kwarg_name)

            click.echo(message, **kwargs)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            self.handleError(record)


class ClickLogger(logging.getLoggerClass()):
    """ Logging class which handles click input and adds it to the extra param

        By specifying keyword arguments to the log functions, the record will have the
        given key-value pair as an attribute making for easy to style and echo records.
    """

    def debug(self, msg, *args, **kwargs):
        """ Calls Logger.debug with extra set to kwargs """
        super(ClickLogger, self).debug(msg, *args, extra=kwargs)

    def info(self, msg, *args, **kwargs):
        """ Calls Logger.info with extra set to kwargs """
        super(ClickLogger, self).info(msg, *args, extra=kwargs)

    def warning(self, msg, *args, **kwargs):
        """ Calls Logger.warning with extra set to kwargs """
        super(ClickLogger, self).warning(msg, *args, extra=kwargs)

    def error(self, msg, *args, **kwargs):
        """ Calls Logger.error with extra set to kwargs """
        super(ClickLogger, self).error(msg, *args, extra=kwargs)

    def critical(self, msg, *args, **kwargs):
        """ Calls Logger.critical with extra set to kwargs """
        super(ClickLogger, self).critical(msg, *args, extra=kwargs)


# creates the handler which prints records
click_log_handler = ClickLogHandler()

# creates the formatter which styles the records
click_log_handler.formatter = ClickLogFormatter()

# captures the package logger
click_logger = logging.getLogger('paychan')

# adds the handler, formatter, and sets default level to warnings so that
# channel server bookkeeping stays quiet unless --verbose is given
click_logger.addHandler(click_log_handler)
click_logger.setLevel(logging.WARNING)
logging.setLoggerClass(ClickLogger)
