from fastapi import Request


def _first_forwarded_hop(value: str) -> dict[str, str]:
    """Parse the client-nearest element of an RFC 7239 ``Forwarded`` header."""
    hop = value.split(",", 1)[0]
    params = {}
    for part in hop.split(";"):
        if "=" not in part:
            continue
        k, v = part.split("=", 1)
        params[k.strip().lower()] = v.strip().strip('"')
    return params


def external_base_url(request: Request, public_base_url: str = "") -> str:
    """Scheme and host guests should use, honouring reverse-proxy headers."""
    if public_base_url:
        return public_base_url.rstrip("/")

    fwd = request.headers.get("forwarded")
    if fwd:
        params = _first_forwarded_hop(fwd)
        if params.get("proto") and params.get("host"):
            return f"{params['proto']}://{params['host']}"

    proto = request.headers.get("x-forwarded-proto")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host")
    if proto and host:
        return f"{proto.split(',')[0].strip()}://{host.split(',')[0].strip()}"

    return str(request.base_url).rstrip("/")
