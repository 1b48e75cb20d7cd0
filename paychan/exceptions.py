""" All command line related exceptions """
# standart python imports
import sys

# 3rd party imports
import click


class CliError(click.ClickException):
    """
    A ClickException with customized formatting.
    """

    def __init__(self, message, json=None):
        self.json = json if json else {}
        super(CliError, self).__init__(message)

    def format_message(self):
        return click.style(str(self.message), fg='red')

    def show(self, file=None):
        """
        Same as base method but without printing "Error: "
        """
        if file is None:
            file = sys.stderr
        click.echo(self.format_message(), file=file)


class ChannelCommandError(CliError):
    """ A channel operation was rejected """

    def __init__(self, error):
        super(ChannelCommandError, self).__init__(str(error), json={"error": error.to_dict()})
        self.error = error


class FileDecodeError(Exception):
    """ Error when a config file cannot be decoded """
