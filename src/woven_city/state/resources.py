"""
Resource model for a city's consciousness.

Every read goes through a documented default and every write is clamped to
[0, 1]. Other modules never touch ``city.resources`` directly.
"""

from .schema import City, clamp


RESOURCE_DEFAULTS: dict[str, float] = {
    "coherence": 1.0,
    "memory": 0.0,
    "trust": 0.5,
    "autonomy": 0.0,
    "complexity": 0.0,
}


def get_resource(city: City, resource: str) -> float:
    """Current value, or the documented default when the key is missing."""
    if resource in city.resources:
        return city.resources[resource]
    return RESOURCE_DEFAULTS.get(resource, 0.0)


def set_resource(city: City, resource: str, value: float) -> float:
    """Write an absolute value (clamped) and return it."""
    value = clamp(value)
    city.resources[resource] = value
    return value


def adjust(city: City, resource: str, delta: float) -> float:
    """Shift a resource by delta (clamped) and return the new value."""
    return set_resource(city, resource, get_resource(city, resource) + delta)


def coherence(city: City) -> float:
    return get_resource(city, "coherence")


def memory(city: City) -> float:
    return get_resource(city, "memory")


def trust(city: City) -> float:
    return get_resource(city, "trust")


def autonomy(city: City) -> float:
    return get_resource(city, "autonomy")


def complexity(city: City) -> float:
    return get_resource(city, "complexity")


def get_parameter(city: City, name: str, default: float = 0.0) -> float:
    return city.parameters.get(name, default)


def adjust_parameter(city: City, name: str, delta: float) -> float:
    """Shift a free-form parameter, clamped to [0, 1]."""
    value = clamp(get_parameter(city, name) + delta)
    city.parameters[name] = value
    return value
