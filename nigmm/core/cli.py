"""Command-line utilities.

Arguments are consumed from the front of a list of tokens: each `pop_*`
function returns the parsed value(s) and the remaining tokens.
"""


class ParseError(RuntimeError):
    """A specialized error for command-line parsers"""
    pass


def istag(arg):
    """Return true if the argument is a tag (`-x` or `--xxx`).

    Negative numbers (`-1`, `-.5`) are values, not tags.
    """
    return (arg.startswith('-') and len(arg) > 1
            and arg[1] not in '0123456789.')


def next_isvalue(args):
    """Return true if the next token exists and is not a tag"""
    return bool(args) and not istag(args[0])


def pop_value(args, tag=''):
    """Pop the value that follows a tag.

    Parameters
    ----------
    args : list[str]
        Remaining tokens.
    tag : str
        Tag being parsed (used in error messages).

    Returns
    -------
    value : str
    args : list[str]

    """
    if not next_isvalue(args):
        raise ParseError(f'Expected a value for tag {tag} but found nothing.')
    value, *args = args
    return value, args


def pop_int(args, tag=''):
    """Pop an integer value, raising a ParseError on failure"""
    value, args = pop_value(args, tag)
    try:
        return int(value), args
    except ValueError:
        raise ParseError(f'Expected an integer for tag {tag} but got {value}')


def pop_ints(args, tag='', max_count=None):
    """Pop all consecutive integer values (at least one)"""
    value, args = pop_int(args, tag)
    values = [value]
    while next_isvalue(args):
        value, args = pop_int(args, tag)
        values.append(value)
    if max_count and len(values) > max_count:
        raise ParseError(f'Tag {tag} takes at most {max_count} values but '
                         f'got {len(values)}')
    return values, args


def pop_choice(args, tag, choices):
    """Pop a value that must be one of `choices`"""
    value, args = pop_value(args, tag)
    if value not in choices:
        raise ParseError(f'Tag {tag} expects one of {list(choices)} '
                         f'but got {value}')
    return value, args
