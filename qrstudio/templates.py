"""Ready-made style templates grouped by category."""

from __future__ import annotations

from dataclasses import dataclass

from qrstudio.models import ColorOrGradient, CustomMarkers, StyleConfig


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    description: str
    category: str
    dots_color: str
    dots_type: str
    background: str
    marker_color: str
    marker_type: str
    center_color: str
    center_type: str
    tags: tuple[str, ...] = ()

    def to_style(self, **overrides) -> StyleConfig:
        """StyleConfig for this template; keyword overrides replace fields (logo, frame, ...)."""
        custom = None
        if self.marker_color != self.dots_color or self.center_color != self.dots_color:
            custom = CustomMarkers(enabled=True, border=self.marker_color, center=self.center_color)
        fields = dict(
            foreground=ColorOrGradient(self.dots_color),
            background=ColorOrGradient(self.background),
            pattern=self.dots_type,
            marker=self.marker_type,
            center_dot=self.center_type,
            custom_markers=custom,
        )
        fields.update(overrides)
        return StyleConfig(**fields)

    def matches(self, query: str) -> bool:
        q = query.lower()
        return q in self.name.lower() or q in self.description.lower() or any(q in t.lower() for t in self.tags)


TEMPLATES: tuple[Template, ...] = (
    # minimalist
    Template("minimalist-black", "Minimalist Black", "Clean black dots on white", "minimalist",
             "#000000", "square", "#ffffff", "#000000", "square", "#000000", "dot",
             ("clean", "professional", "modern")),
    Template("minimalist-gray", "Minimalist Gray", "Soft version in gray tones", "minimalist",
             "#6b7280", "rounded", "#f9fafb", "#6b7280", "square", "#6b7280", "dot",
             ("soft", "elegant", "neutral")),
    # luxury
    Template("luxury-gold", "Luxury Gold", "Premium design with gold accents", "luxury",
             "#d4af37", "classy", "#1a1a1a", "#d4af37", "square", "#d4af37", "square",
             ("premium", "luxurious", "elegant")),
    Template("luxury-silver", "Luxury Silver", "Sophisticated silver tones", "luxury",
             "#c0c0c0", "classy-rounded", "#2d2d2d", "#c0c0c0", "square", "#c0c0c0", "square",
             ("sophisticated", "metallic", "premium")),
    Template("luxury-royal", "Luxury Royal", "Regal purple tones", "luxury",
             "#8b5cf6", "classy", "#1e1b4b", "#8b5cf6", "square", "#8b5cf6", "square",
             ("royal", "purple", "premium")),
    # fun
    Template("fun-rainbow", "Rainbow", "Colorful and cheerful", "fun",
             "#ef4444", "extra-rounded", "#fef3c7", "#3b82f6", "extra-rounded", "#10b981", "dot",
             ("colorful", "cheerful", "creative")),
    Template("fun-neon", "Neon", "Cyberpunk neon colors", "fun",
             "#00ff88", "dots", "#0a0a0a", "#ff0080", "square", "#00ffff", "dot",
             ("neon", "cyberpunk", "futuristic")),
    Template("fun-pastel", "Pastel", "Soft pastel colors", "fun",
             "#f472b6", "rounded", "#fdf2f8", "#a78bfa", "extra-rounded", "#34d399", "dot",
             ("soft", "pastel", "cute")),
    # corporate
    Template("corporate-blue", "Corporate Blue", "Professional design for businesses", "corporate",
             "#1e40af", "square", "#ffffff", "#1e40af", "square", "#1e40af", "square",
             ("professional", "business", "reliable")),
    Template("corporate-green", "Corporate Green", "Eco-friendly and sustainable", "corporate",
             "#059669", "rounded", "#f0fdf4", "#059669", "square", "#059669", "dot",
             ("eco", "sustainable", "natural")),
    # creative
    Template("creative-gradient", "Gradient", "Multi-color accents", "creative",
             "#8b5cf6", "classy-rounded", "#ffffff", "#3b82f6", "extra-rounded", "#10b981", "dot",
             ("creative", "gradient", "artistic")),
    Template("creative-monochrome", "Monochrome", "Shades of gray", "creative",
             "#374151", "dots", "#f3f4f6", "#6b7280", "square", "#9ca3af", "dot",
             ("monochrome", "shades", "artistic")),
)

_BY_ID = {t.id: t for t in TEMPLATES}


def get_template(template_id: str) -> Template | None:
    return _BY_ID.get(template_id)


def templates_by_category(category: str) -> list[Template]:
    return [t for t in TEMPLATES if t.category == category]


def list_categories() -> list[str]:
    """Categories in first-appearance order."""
    return list(dict.fromkeys(t.category for t in TEMPLATES))


def search_templates(query: str) -> list[Template]:
    return [t for t in TEMPLATES if t.matches(query)]
