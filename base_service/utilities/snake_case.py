import re


_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|[\s\-]+")

def snake_case(name: str) -> str:
    """ Converts camelCase, kebab-case and spaced names to snake_case. Dots are kept so nested fields still work. """
    parts = [_BOUNDARY.sub("_", part).lower() for part in name.split(".")]
    return ".".join(parts)
