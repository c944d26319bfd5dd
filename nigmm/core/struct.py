"""Structure classes that hold the options of a command.

They are related to the `dataclasses` library (although they deviate
from it): a structure's fields are its annotated class attributes,
whose class-level values are (shallow-)copied into each instance.
"""
from copy import copy
import inspect


class Structure:
    """A class that mimics a C-like structure

    ```{python}
    >> class Option(Structure):
    >>   skip: list = [1, 1, 1]
    >>   verbose: int = 1
    ```
    """

    def __init__(self, **kwargs):
        annotations = self._all_annotations()
        for k, v in kwargs.items():
            if k not in annotations:
                raise TypeError(f'Unknown attribute {k}')
            setattr(self, k, copy(v))
        for k in annotations:
            if k in kwargs:
                continue
            if not hasattr(type(self), k):
                raise TypeError(f'Missing required argument {k}')
            setattr(self, k, copy(getattr(type(self), k)))

    def keys(self):
        """All field names, in the order in which they were defined."""
        return self._all_annotations().keys()

    def __getitem__(self, key):
        if key not in self.keys():
            raise KeyError(key)
        return getattr(self, key)

    def __iter__(self):
        for key in self.keys():
            yield key

    def items(self):
        for key in self.keys():
            yield key, self[key]

    def _all_annotations(self):
        """Get all annotations from all base classes"""
        annotations = {}
        for klass in reversed(type(self).__mro__):
            annotations.update(inspect.get_annotations(klass))
        return annotations

    def __repr__(self):
        lines = [f'  {k} = {v},' for k, v in self.items()]
        return '\n'.join([f'{type(self).__name__}(', *lines, ')'])

    def __eq__(self, other):
        return (isinstance(other, Structure)
                and dict(self.items()) == dict(other.items()))
