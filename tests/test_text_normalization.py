from portal_core.text_normalization import (
    levenshtein_distance,
    matches_all_terms,
    normalize_for_search,
    normalize_text,
    search_matches,
    slugify,
)


def test_normalize_text_quita_tildes_y_mayusculas():
    assert normalize_text("Construcción ÁRBOL Ñandú") == "construccion arbol nandu"
    assert normalize_text(None) == ""


def test_normalize_for_search_quita_puntuacion_y_espacios():
    assert normalize_for_search("  ¿Cómo   pago el   predial? ") == "como pago el predial"


def test_levenshtein_distance():
    assert levenshtein_distance("casa", "casa") == 0
    assert levenshtein_distance("casa", "cosa") == 1
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("kitten", "sitting") == 3


def test_search_matches_ignora_tildes():
    assert search_matches("construccion", "Licencia de Construcción")
    assert search_matches("", "lo que sea")
    assert not search_matches("predial", None)


def test_search_matches_palabra_completa():
    assert search_matches("pago", "pago en línea", whole_word=True)
    assert not search_matches("pag", "pago en línea", whole_word=True)


def test_search_matches_difusa_tolera_errores_de_tipeo():
    assert not search_matches("licensia", "licencia de conducción")
    assert search_matches("licensia", "licencia de conducción", fuzzy=True)
    assert not search_matches("zzzzzzzz", "licencia de conducción", fuzzy=True)


def test_matches_all_terms_exige_todas_las_palabras():
    fields = ["Impuesto predial unificado", None, "Pago anual"]
    assert matches_all_terms("predial pago", fields)
    assert matches_all_terms("PREDIAL", fields)
    assert not matches_all_terms("predial vehiculos", fields)
    assert matches_all_terms(None, fields)


def test_slugify():
    assert slugify("Impuesto Predial") == "impuesto-predial"
    assert slugify("Licencias, permisos y más") == "licencias-permisos-y-mas"
