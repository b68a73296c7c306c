import typing as t

import click


class CLIError(click.ClickException):
    """A ClickException printing its message in red to stderr."""

    def format_message(self) -> str:
        return click.style(f"Error: {self.message}", fg="red")

    def show(self, file: t.Optional[t.IO[t.Any]] = None) -> None:
        click.echo(self.format_message(), file=file, err=file is None)
