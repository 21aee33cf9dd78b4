"""Pillow を使ってレイアウト結果を描画する。

グリッド座標をピクセル座標に変換し、線・人物ボックス・パートナーラベルを描く。
逆変換（ピクセル座標からどの人物のボックスかを求める）もここで行う。
"""

from __future__ import annotations

from PIL import Image, ImageDraw, ImageFont

from family_tree_layout.canvas import Entity, Line, PartnerLabel, TreeData
from family_tree_layout.config import AppConfig
from family_tree_layout.models import WEDDED_KINDS, FamilyGraph, Gender, PartnerKind
from family_tree_layout.ordering import parse_date

# グリッド1単位に対するボックスの大きさ
BOX_WIDTH_RATIO = 0.8
BOX_HEIGHT_RATIO = 0.6

_KIND_LABELS = {
    PartnerKind.MARRIED: "婚姻",
    PartnerKind.SEPARATED: "別居",
    PartnerKind.DIVORCED: "離婚",
    PartnerKind.ANNULLED: "婚姻無効",
    PartnerKind.ENGAGED: "婚約",
    PartnerKind.DATING: "交際",
    PartnerKind.RELATIONSHIP: "交際",
}


def _get_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """フォントを取得する。システムフォントが見つからない場合はデフォルトを使用。"""
    # (パス, ttcインデックス) のリスト。None はデフォルトインデックス。
    font_candidates: list[tuple[str, int | None]] = [
        ("/System/Library/Fonts/ヒラギノ角ゴシック W6.ttc", None),
        ("/System/Library/Fonts/ヒラギノ角ゴシック W3.ttc", None),
        ("/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc", None),
        ("/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc", None),
    ]
    for font_path, index in font_candidates:
        try:
            if index is not None:
                return ImageFont.truetype(font_path, size, index=index)
            return ImageFont.truetype(font_path, size)
        except OSError:
            continue
    return ImageFont.load_default()


def _dash_segments(
    start: tuple[float, float], end: tuple[float, float], dash: float
) -> list[tuple[tuple[float, float], tuple[float, float]]]:
    """start から end までの線を dash 間隔の点線の区間に分割する。"""
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    length = (dx**2 + dy**2) ** 0.5
    if length == 0 or dash <= 0:
        return [(start, end)]

    segments = []
    pos = 0.0
    while pos < length:
        seg_end = min(pos + dash, length)
        segments.append(
            (
                (start[0] + dx * pos / length, start[1] + dy * pos / length),
                (start[0] + dx * seg_end / length, start[1] + dy * seg_end / length),
            )
        )
        pos += dash * 2
    return segments


class LayoutDrawer:
    """レイアウト結果1つ分の描画と当たり判定を管理するクラス。"""

    def __init__(self, layout: TreeData, graph: FamilyGraph, config: AppConfig) -> None:
        self.layout = layout
        self.graph = graph
        self.config = config
        self.font_name = _get_font(config.dimensions.font_size_name)
        self.font_label = _get_font(config.dimensions.font_size_label)
        dims = config.dimensions
        # キャンバスサイズ (余白を含む)
        self.canvas_width = int(layout.width * dims.box_width + dims.padding * 2)
        self.canvas_height = int(layout.height * dims.box_height + dims.padding * 2)

    def to_pixel(self, gx: float, gy: float) -> tuple[float, float]:
        """グリッド座標をピクセル座標（ボックス中心）に変換する。"""
        dims = self.config.dimensions
        return (
            (gx - self.layout.left + 0.5) * dims.box_width + dims.padding,
            (gy - self.layout.top + 0.5) * dims.box_height + dims.padding,
        )

    def box_rect(self, entity: Entity) -> tuple[float, float, float, float]:
        dims = self.config.dimensions
        cx, cy = self.to_pixel(entity.x, entity.y)
        half_w = dims.box_width * BOX_WIDTH_RATIO / 2
        half_h = dims.box_height * BOX_HEIGHT_RATIO / 2
        return (cx - half_w, cy - half_h, cx + half_w, cy + half_h)

    def entity_at(self, px: float, py: float) -> str | None:
        """ピクセル座標にあるボックスの人物IDを返す。

        重複して描かれたボックスでも元の人物IDを返す。該当なしなら None。
        """
        for entity in self.layout.entities.values():
            x0, y0, x1, y1 = self.box_rect(entity)
            if x0 <= px <= x1 and y0 <= py <= y1:
                return entity.duplicate_of or entity.person_id
        return None

    def draw(self) -> Image.Image:
        """レイアウト全体を描画した画像を返す。"""
        img = Image.new("RGB", (self.canvas_width, self.canvas_height), self.config.colors.background)
        draw = ImageDraw.Draw(img)

        # 線を先に描画（ボックスの下に表示）
        for line in self.layout.lines:
            self._draw_line(draw, line)

        for entity in self.layout.entities.values():
            self._draw_person_box(draw, entity)

        for label in self.layout.labels:
            self._draw_partner_label(draw, label)

        return img

    def _draw_line(self, draw: ImageDraw.ImageDraw, line: Line) -> None:
        colors = self.config.colors
        dims = self.config.dimensions
        if line.type.is_partnership:
            color = colors.partner_line
            width = dims.line_width_partner
        elif line.type.is_non_biological:
            color = colors.non_bio_line
            width = dims.line_width_child
        else:
            color = colors.child_line
            width = dims.line_width_child

        start = self.to_pixel(line.x1, line.y1)
        end = self.to_pixel(line.x2, line.y2)
        if line.type.is_dashed:
            for a, b in _dash_segments(start, end, dims.dash_length):
                draw.line([a, b], fill=color, width=width)
        else:
            draw.line([start, end], fill=color, width=width)

    def _draw_person_box(self, draw: ImageDraw.ImageDraw, entity: Entity) -> None:
        """人物ボックスを描画する。"""
        person = self.graph.get_person(entity.person_id)
        if person is None:
            return

        colors = self.config.colors
        dims = self.config.dimensions
        if person.gender == Gender.MALE:
            fill, border = colors.male_fill, colors.male_border
        elif person.gender == Gender.FEMALE:
            fill, border = colors.female_fill, colors.female_border
        else:
            fill, border = colors.other_fill, colors.other_border

        width = dims.border_width
        if entity.is_focal:
            border = colors.focal_border
            width = dims.focal_border_width
        elif entity.is_marked:
            border = colors.marked_border
            width = dims.focal_border_width
        elif entity.duplicate_of is not None and entity.duplicate_group is None:
            # 2回目以降に描かれたボックス
            border = colors.duplicate_border

        x0, y0, x1, y1 = self.box_rect(entity)
        draw.rounded_rectangle(
            [x0, y0, x1, y1],
            radius=dims.corner_radius,
            fill=fill,
            outline=border,
            width=width,
        )

        # 名前（中央揃え）
        name_bbox = draw.textbbox((0, 0), person.name, font=self.font_name)
        name_w = name_bbox[2] - name_bbox[0]
        name_h = name_bbox[3] - name_bbox[1]
        name_x = (x0 + x1) / 2 - name_w / 2
        name_y = (y0 + y1) / 2 - name_h / 2
        draw.text((name_x, name_y), person.name, fill=colors.text, font=self.font_name)

    def partner_label_text(self, label: PartnerLabel) -> str:
        """ラベルの文字列（婚姻年、なければ関係の種類）。"""
        person = self.graph.get_person(label.person_id)
        if person is None or label.partner_id not in person.partners:
            return ""
        partnership = person.partners[label.partner_id]
        if partnership.kind in WEDDED_KINDS or partnership.kind is None:
            year = parse_date(partnership.marriage_date).year
            if year is not None:
                return f"{year}年" if year > 0 else f"前{-year}年"
        if partnership.kind is None:
            return ""
        return _KIND_LABELS[partnership.kind]

    def _draw_partner_label(self, draw: ImageDraw.ImageDraw, label: PartnerLabel) -> None:
        text = self.partner_label_text(label)
        if not text:
            return
        cx, cy = self.to_pixel((label.x1 + label.x2) / 2, label.y)
        bbox = draw.textbbox((0, 0), text, font=self.font_label)
        text_w = bbox[2] - bbox[0]
        text_h = bbox[3] - bbox[1]
        ty = cy + 4 if label.below else cy - text_h - 4
        draw.text((cx - text_w / 2, ty), text, fill=self.config.colors.text, font=self.font_label)
