"""Generated configuration-property reference tables."""

from guide_site.config_reference.generator import ConfigTableGenerator, display_default, display_type, write_includes
from guide_site.config_reference.index import ConfigIndex, IndexedProperty
from guide_site.config_reference.loader import load_metadata, load_metadata_dir
from guide_site.config_reference.model import ConfigProperty, ConfigRoot, ConfigSection, env_var_name

__all__ = [
    "ConfigIndex",
    "ConfigProperty",
    "ConfigRoot",
    "ConfigSection",
    "ConfigTableGenerator",
    "IndexedProperty",
    "display_default",
    "display_type",
    "env_var_name",
    "load_metadata",
    "load_metadata_dir",
    "write_includes",
]
