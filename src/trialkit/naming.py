"""
Display names for individual attempts of a retrying test.

Templates support two placeholders:
    {index}        1-based attempt number
    {displayName}  the test's own name (``{display_name}`` also accepted)

Any other braces are left untouched, so templates never fail to render.
"""

DEFAULT_NAME_TEMPLATE = "[{index}]"
INDEX_PLACEHOLDER = "{index}"
DISPLAY_NAME_PLACEHOLDERS = ("{displayName}", "{display_name}")


def format_display_name(template: str, index: int, display_name: str) -> str:
    """
    Render the display name of one attempt.
    
    Args:
        template: Naming template, e.g. "[{index}]" or "{displayName} #{index}"
        index: 1-based attempt number
        display_name: Base name of the test
    
    Returns:
        Rendered name
    
    Example:
        >>> format_display_name("{displayName} [{index}]", 2, "test_login")
        'test_login [2]'
    """
    rendered = template.replace(INDEX_PLACEHOLDER, str(index))
    for placeholder in DISPLAY_NAME_PLACEHOLDERS:
        rendered = rendered.replace(placeholder, display_name)
    return rendered
