from .exceptions import EnvelopeError


def _describe(payload):
    if isinstance(payload, dict):
        keys = ', '.join(sorted(str(key) for key in payload)) or 'no keys'
        return f'object with {keys}'
    return type(payload).__name__


def unwrap_collection(payload, key=None):
    """Return the record list from a bare list or a {"data": [...]} envelope.

    Endpoints that answer with a named list, such as {"fees": [...]}, pass that
    name as ``key``; it is tried before "data".
    """
    if isinstance(payload, list):
        return payload
    if key and isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    if isinstance(payload, dict) and 'data' in payload:
        data = payload['data']
        if isinstance(data, list):
            return data
        raise EnvelopeError(f'Expected a list under "data", got {_describe(data)}.', payload=payload)
    raise EnvelopeError(f'Expected a list or a "data" envelope, got {_describe(payload)}.', payload=payload)


def unwrap_object(payload):
    """Return a single record from a bare object or a {"data": {...}} envelope."""
    if isinstance(payload, dict):
        data = payload.get('data')
        if isinstance(data, dict):
            return data
        if 'data' in payload and data is not None:
            raise EnvelopeError(f'Expected an object under "data", got {_describe(data)}.', payload=payload)
        return payload
    raise EnvelopeError(f'Expected an object, got {_describe(payload)}.', payload=payload)
