"""Invoice presentation templates.

Two kinds of template exist side by side:

* predefined layouts (Standard, Classy, Modern) that decide how the PDF looks,
  chosen once per business together with an accent colour;
* custom section configurations that decide which blocks an invoice shows,
  one of which may be the business default.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from models import Invoice, TemplateConfig

logger = logging.getLogger(__name__)

COLOR_HEX = re.compile(r"^#[0-9A-Fa-f]{6}$")
DEFAULT_COLOR = "#0B5394"

# name -> (seed usage count, preview image)
PREDEFINED_LAYOUTS = {
    "Standard": (120, "/templates/standard.png"),
    "Classy": (350, "/templates/classy.png"),
    "Modern": (85, "/templates/modern.png"),
}


class TemplateError(ValueError):
    pass


@dataclass
class PredefinedTemplate:
    id: int
    name: str
    usage_count: int
    preview_image_url: str


@dataclass
class CustomTemplate:
    id: int
    name: str
    config: TemplateConfig
    is_default: bool = False
    created_at: Optional[datetime] = None


class TemplateRegistry:
    def __init__(self, default_layout: str = "Standard"):
        self.default_layout = default_layout
        self.layouts: List[PredefinedTemplate] = [
            PredefinedTemplate(i, name, count, preview)
            for i, (name, (count, preview)) in enumerate(PREDEFINED_LAYOUTS.items(), start=1)
        ]
        self.selected: Optional[PredefinedTemplate] = None
        self.color_hex = DEFAULT_COLOR
        self._custom: Dict[int, CustomTemplate] = {}
        self._next_id = 1

    # --- predefined layouts -------------------------------------------------

    def layout(self, name: str) -> PredefinedTemplate:
        for tpl in self.layouts:
            if tpl.name.lower() == name.lower():
                return tpl
        raise TemplateError(f"Predefined template '{name}' not found")

    def popular(self) -> List[PredefinedTemplate]:
        return sorted(self.layouts, key=lambda t: t.usage_count, reverse=True)

    def assign_template(self, name: str, color_hex: Optional[str] = None) -> PredefinedTemplate:
        """Select the business layout; usage only counts when the choice changes."""
        template = self.layout(name)
        color = color_hex or DEFAULT_COLOR
        if not COLOR_HEX.match(color):
            raise TemplateError(f"Invalid colour '{color}', expected #RRGGBB")

        if self.selected is None or self.selected.id != template.id:
            template.usage_count += 1
        self.selected = template
        self.color_hex = color.upper()
        logger.info("layout assigned", extra={"template": template.name, "color": self.color_hex})
        return template

    # --- custom section configurations --------------------------------------

    def create(self, name: str, config: TemplateConfig, is_default: bool = False) -> CustomTemplate:
        if not name or not name.strip():
            raise TemplateError("Template name is required")
        if is_default:
            self._unset_defaults()
        tpl = CustomTemplate(self._next_id, name.strip(), config, is_default, datetime.now())
        self._custom[tpl.id] = tpl
        self._next_id += 1
        logger.info("template created", extra={"template_id": tpl.id})
        return tpl

    def update(self, template_id: int, name: str, config: TemplateConfig, is_default: bool = False) -> CustomTemplate:
        tpl = self.get(template_id)
        if not name or not name.strip():
            raise TemplateError("Template name is required")
        if is_default and not tpl.is_default:
            self._unset_defaults()
        tpl.name = name.strip()
        tpl.config = config
        tpl.is_default = is_default
        return tpl

    def delete(self, template_id: int) -> None:
        self.get(template_id)
        del self._custom[template_id]

    def get(self, template_id: int) -> CustomTemplate:
        try:
            return self._custom[template_id]
        except KeyError:
            raise TemplateError(f"Template {template_id} not found") from None

    def all(self) -> List[CustomTemplate]:
        return list(self._custom.values())

    def default(self) -> Optional[CustomTemplate]:
        return next((t for t in self._custom.values() if t.is_default), None)

    def _unset_defaults(self):
        for tpl in self._custom.values():
            tpl.is_default = False

    # --- rendering ----------------------------------------------------------

    def resolve(self, invoice: Optional[Invoice] = None) -> Tuple[str, str, TemplateConfig]:
        """Return (layout name, accent colour, section config) for an invoice."""
        layout = self.selected.name if self.selected else self.default_layout
        config = None
        if invoice is not None and invoice.template_id is not None:
            tpl = self._custom.get(invoice.template_id)
            if tpl is not None:
                config = tpl.config
        if config is None:
            default = self.default()
            config = default.config if default else TemplateConfig()
        return layout, self.color_hex, config
