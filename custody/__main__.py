from .cli import cli

cli(obj={})
