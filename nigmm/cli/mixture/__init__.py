from . import cli
from .main import run, load
from .parser import parse, ParseError
