import re
from typing import Any, Dict, List, Optional

ZIPCODE_PATTERN = re.compile(r"\b(\d{5})(?:-\d{4})?\b")


def extract_zipcode(address: Optional[str]) -> Optional[str]:
    """
    Pull the first US postal code out of a formatted address.

    Args:
        address (str): Formatted address, e.g. "205 E Houston St, New York, NY 10002, USA".

    Returns:
        Optional[str]: The 5-digit ZIP (any +4 suffix dropped), or None.
    """
    if not address:
        return None
    # Street numbers with five digits also match; postal_code components are preferred upstream.
    match = ZIPCODE_PATTERN.search(address)
    return match.group(1) if match else None


def zipcode_from_components(components: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """Return the `postal_code` address component Google supplies, if any."""
    for comp in components or []:
        if "postal_code" in (comp.get("types") or []):
            value = (comp.get("long_name") or comp.get("short_name") or "").strip()
            zipcode = extract_zipcode(value)
            if zipcode:
                return zipcode
    return None


def parse_address(formatted_address: Optional[str]) -> Dict[str, str]:
    """
    Split a comma-separated US address into its parts.

    "178 Broadway, Brooklyn, NY 11211, USA" ->
        {"street_number": "178", "route": "Broadway", "city": "Brooklyn",
         "state": "NY", "zipcode": "11211"}
    """
    parsed = {"street_number": "", "route": "", "city": "", "state": "", "zipcode": ""}
    if not formatted_address:
        return parsed

    parts = [p.strip() for p in formatted_address.split(",")]

    street = parts[0].split(" ", 1)
    if street[0].isdigit():
        parsed["street_number"] = street[0]
        parsed["route"] = street[1] if len(street) > 1 else ""
    else:
        parsed["route"] = parts[0]

    if len(parts) > 1:
        parsed["city"] = parts[1]
    if len(parts) > 2:
        state_zip = parts[2].split()
        if state_zip:
            parsed["state"] = state_zip[0]
        parsed["zipcode"] = extract_zipcode(parts[2]) or ""

    return parsed


def resolve_zipcode(formatted_address: Optional[str], components: Optional[List[Dict[str, Any]]] = None) -> Optional[str]:
    """ZIP for a place: the postal_code component first, the address text second."""
    return zipcode_from_components(components) or extract_zipcode(formatted_address)
