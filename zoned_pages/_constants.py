"""Common literal values used across zoned_pages.

These constants keep directory names, file extensions, definition keys and
template parameter names centralized so the builder, the composition engine,
the router and the tests share the same values. Intended for internal use
within the zoned_pages package.

Examples
--------
>>> from zoned_pages import _constants
>>> _constants.TEMPLATE_FILE_TEMPLATE.format(short_name="banner")
'banner.jinja'
>>> _constants.PUSHED_UNITS_ZONE
'_pushedUnits'
"""

# app directory layout
DIRECTORY_LAYOUTS = "layouts"
DIRECTORY_PAGES = "pages"
DIRECTORY_UNITS = "units"
DIRECTORY_PUBLIC = "public"
APP_CONF_CANDIDATES = ("app-conf.yaml", "app-conf.yml", "app-conf.json")

# per-component files
TEMPLATE_EXTENSION = ".jinja"
TEMPLATE_FILE_TEMPLATE = "{short_name}.jinja"
SCRIPT_FILE_TEMPLATE = "{short_name}.py"
DEFINITION_FILE_TEMPLATE = "{short_name}.json"
SCRIPT_ENTRY_POINT = "on_request"

# component definition keys
DEFINITION_VERSION = "version"
DEFINITION_EXTENDS = "extends"
DEFINITION_INDEX = "index"
DEFINITION_DISABLED = "disabled"
DEFINITION_PERMISSIONS = "permissions"
DEFINITION_URI = "uri"
DEFINITION_LAYOUT = "layout"
DEFINITION_IS_ANONYMOUS = "isAnonymous"
DEFINITION_PUSHED_URIS = "pushedUris"
DEFAULT_COMPONENT_INDEX = 1_000_000

# template tag parameters
PARAM_PARAMS = "params"
SCOPE_PROTECTED = "protected"

# zones and resources
PUSHED_UNITS_ZONE = "_pushedUnits"
RESOURCE_TYPES = ("css", "less", "js")
COMBINED_RESOURCES_SEPARATOR = ","
COMBINED_RESOURCES_URL_TAIL = ".combined."

# variable name the composition context is bound to inside templates
COMPOSITION_VARIABLE = "_composition"
