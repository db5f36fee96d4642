"""
Posicionamento das anotações no quadro.

As posições gravadas são pixels alinhados a uma grade de GRID_W x GRID_H.
Dados antigos guardavam um "rank" pequeno em position_x; esses valores são
convertidos para a grade na leitura (4 colunas por linha).
"""
from __future__ import annotations

import math

GRID_W = 240
GRID_H = 220

COLUMNS = 4
# abaixo disso (nos dois eixos) o valor é tratado como rank legado
LEGACY_RANK_LIMIT = 50


def js_round(value: float) -> int:
    return math.floor(value + 0.5)


def snap(x: float, y: float, grid_w: int = GRID_W, grid_h: int = GRID_H) -> tuple[int, int]:
    return js_round(x / grid_w) * grid_w, js_round(y / grid_h) * grid_h


def drop_position(x: int, y: int, dx: float, dy: float,
                  grid_w: int = GRID_W, grid_h: int = GRID_H) -> tuple[int, int]:
    """Nova posição depois de arrastar (dx, dy); nunca fica negativa."""
    return snap(max(0, (x or 0) + dx), max(0, (y or 0) + dy), grid_w, grid_h)


def legacy_to_pixel(x, y, grid_w: int = GRID_W, grid_h: int = GRID_H) -> tuple[int, int]:
    x = x or 0
    y = y or 0
    if x < LEGACY_RANK_LIMIT and y < LEGACY_RANK_LIMIT and (x != 0 or y != 0):
        col = x % COLUMNS
        row = x // COLUMNS
        return col * grid_w, row * grid_h
    return x, y


def place_notes(positions: list[tuple[int, int]],
                grid_w: int = GRID_W, grid_h: int = GRID_H) -> list[tuple[int, int]]:
    """
    Normaliza as posições de uma lista de anotações (na ordem de exibição).

    1) converte ranks legados em pixels;
    2) qualquer anotação em (0, 0) que não seja a primeira vai para a primeira
       célula livre, varrendo linha a linha em 4 colunas.
    """
    placed = [legacy_to_pixel(x, y, grid_w, grid_h) for x, y in positions]

    occupied = {(js_round(x / grid_w), js_round(y / grid_h)) for x, y in placed}

    result = []
    for i, (x, y) in enumerate(placed):
        if x == 0 and y == 0 and i > 0:
            col = row = 0
            while (col, row) in occupied:
                col += 1
                if col >= COLUMNS:
                    col = 0
                    row += 1
            occupied.add((col, row))
            result.append((col * grid_w, row * grid_h))
        else:
            result.append((x, y))
    return result
