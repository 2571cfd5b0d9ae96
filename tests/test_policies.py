import math

import pytest

from estoque_scan.domain.errors import CodigoVazio, QuantidadeInvalida, TipoErro
from estoque_scan.domain.models import KitAlias
from estoque_scan.domain.policies import (
    normalizar_codigo,
    normalizar_kit_skus,
    normalizar_kits,
    normalizar_multiplicador,
    normalizar_rastreio,
    quantidade_compensada,
    quantidade_efetiva,
    round2,
    validar_quantidade,
    valor_total,
)


@pytest.mark.parametrize("valor, esperado", [
    (2.675, 2.68),
    (1.005, 1.01),
    (14, 14.0),
    (-1.005, -1.01),
    ("3.333", 3.33),
    (None, 0.0),
    ("abc", 0.0),
    (math.inf, 0.0),
    (math.nan, 0.0),
    (10**400, 0.0),
])
def test_round2(valor, esperado):
    assert round2(valor) == esperado


def test_valor_total():
    assert valor_total(7, 2.0) == 14.0
    assert valor_total(3, 0.1) == 0.3
    assert valor_total(None, 5) == 0.0


def test_normalizar_codigo_apara_sem_mudar_caixa():
    assert normalizar_codigo("  abc-1 \n") == "abc-1"


@pytest.mark.parametrize("raw", ["", "   ", None, 123])
def test_normalizar_codigo_vazio(raw):
    with pytest.raises(CodigoVazio) as exc:
        normalizar_codigo(raw)
    assert exc.value.tipo is TipoErro.EMPTY_CODE


def test_normalizar_rastreio_maiusculas():
    assert normalizar_rastreio(" br12x ") == "BR12X"


@pytest.mark.parametrize("qtd, esperado", [(1, 1), (3, 3), (2.9, 2), (0.5, 1), ("4", 4)])
def test_validar_quantidade(qtd, esperado):
    assert validar_quantidade(qtd) == esperado


@pytest.mark.parametrize("qtd", [0, -1, "abc", None, True, math.inf, math.nan, 10**400])
def test_validar_quantidade_invalida(qtd):
    with pytest.raises(QuantidadeInvalida):
        validar_quantidade(qtd)


def test_quantidade_efetiva_com_kit():
    assert quantidade_efetiva(2, KitAlias(sku="K3", multiplier=3)) == 6
    assert quantidade_efetiva(2, None) == 2
    with pytest.raises(QuantidadeInvalida):
        quantidade_efetiva(0, None)


def test_quantidade_compensada():
    assert quantidade_compensada(14, "out", 6) == 20
    assert quantidade_compensada(3, "in", 5) == 0
    assert quantidade_compensada(8, "in", 5) == 3
    assert quantidade_compensada(8, "ajuste", 5) == 8


@pytest.mark.parametrize("raw, esperado", [(None, 1), (0, 1), (-3, 1), (2.7, 2), ("4", 4), ("x", 1), (10**400, 1)])
def test_normalizar_multiplicador(raw, esperado):
    assert normalizar_multiplicador(raw) == esperado


def test_normalizar_kits_descarta_sku_vazio():
    kits = normalizar_kits([
        {"sku": " K3 ", "label": " 3-pack ", "multiplier": 3},
        {"sku": "", "multiplier": 2},
        {"label": "sem sku"},
        KitAlias(sku="K2", multiplier=0),
        "lixo",
    ])
    assert kits == [KitAlias("K3", "3-pack", 3), KitAlias("K2", "", 1)]
    assert normalizar_kits(None) == []


def test_normalizar_kit_skus():
    assert normalizar_kit_skus([" A ", "", 3, "B"]) == ["A", "B"]
    assert normalizar_kit_skus("A") == []
