"""
Zeene Storefront - Template Configuration
==========================================
Jinja2 environment for notification emails, with custom filters and globals.
"""

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config.settings import TEMPLATE_DIR, STORE_NAME, STORE_ADMIN_EMAIL, BASE_URL
from common.helpers import format_price

# Autoescape: customer-supplied fields are rendered into HTML
templates = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html", "xml"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


# ==========================================
# Register Filters & Globals
# ==========================================

# Filters (usage in template: {{ value | price }})
templates.filters["price"] = format_price

templates.globals["store_name"] = STORE_NAME
templates.globals["store_email"] = STORE_ADMIN_EMAIL
templates.globals["base_url"] = BASE_URL


def render_template(name: str, **context) -> str:
    """Render a template from TEMPLATE_DIR to a string."""
    return templates.get_template(name).render(**context)
