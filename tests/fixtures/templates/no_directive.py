"""Module without a template directive."""


class Box:
    pass
