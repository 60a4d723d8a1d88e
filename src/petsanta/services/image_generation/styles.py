"""Holiday style templates offered by the product."""

from dataclasses import dataclass


@dataclass(frozen=True)
class StyleTemplate:
    id: str
    label: str
    prompt: str


STYLE_TEMPLATES: tuple[StyleTemplate, ...] = (
    StyleTemplate(
        id="santa-suit",
        label="Santa Suit",
        prompt=(
            "Add a realistic, high-quality Santa Claus suit and hat to this pet. The background "
            "should be a festive living room with a Christmas tree and warm lighting."
        ),
    ),
    StyleTemplate(
        id="elf-costume",
        label="Elf Costume",
        prompt=(
            "Add a cute green Elf costume and a pointed hat with a bell to this pet. The "
            "background should be a cozy Santa workshop filled with wooden toys."
        ),
    ),
    StyleTemplate(
        id="reindeer-hoodie",
        label="Reindeer Hoodie",
        prompt=(
            "Add a brown Reindeer hoodie with soft antlers and a red nose to this pet. The "
            "background should be a snowy outdoor scene at night with stars."
        ),
    ),
    StyleTemplate(
        id="cozy-sweater",
        label="Cozy Sweater",
        prompt=(
            "Dress this pet in a warm, knitted red Christmas sweater with snowflake patterns. "
            "The background should be a cozy fireplace with stockings hanging."
        ),
    ),
    StyleTemplate(
        id="winter-wonderland",
        label="Winter Wonderland",
        prompt=(
            "Place this pet in a magical winter wonderland. No costume, just surrounding it "
            "with deep snow, glowing pine trees, and falling snowflakes."
        ),
    ),
    StyleTemplate(
        id="gift-box",
        label="Gift Box Surprise",
        prompt=(
            "Place this pet inside a beautifully decorated open Christmas gift box with "
            "ribbons and ornaments around it. Festive bokeh background."
        ),
    ),
)


def get_style(style_id: str) -> StyleTemplate | None:
    for template in STYLE_TEMPLATES:
        if template.id == style_id:
            return template
    return None
