import pytest

from procedure_bot.catalog import BrandDictionary, OperationCatalog
from procedure_bot.intent_extractor import Intent, IntentExtractor


def test_operation_model_and_brand(extractor):
    intent = extractor.extract_intent("troca de rolamento RRE160HCC Toyota")
    assert intent.operation == "troca de rolamento"
    assert intent.equipment == "RRE160HCC toyota"
    assert intent.equipment.index("RRE160HCC") < intent.equipment.index("toyota")


def test_brand_without_preceding_token(extractor):
    intent = extractor.extract_intent("troca de filtro hyster")
    assert intent == Intent(operation="troca de filtro", equipment="hyster")


def test_single_word_without_brand(extractor):
    intent = extractor.extract_intent("oi")
    assert intent.operation == ""
    assert intent.equipment == "oi"


def test_empty_and_missing_text(extractor):
    assert extractor.extract_intent("") == Intent()
    assert extractor.extract_intent(None) == Intent()
    assert extractor.extract_intent("   ").is_empty


def test_accents_and_case_are_ignored(extractor):
    intent = extractor.extract_intent("TROCA DE ÓLEO do motor 8FGU25 Toyota")
    assert intent.operation == "troca de oleo"
    assert intent.equipment == "8FGU25 toyota"


def test_first_brand_in_token_order_wins(extractor):
    intent = extractor.extract_intent("pneu H50 hyster igual ao 7FBE toyota")
    assert intent.operation == "pneu"
    assert intent.equipment == "H50 hyster"


def test_no_brand_falls_back_to_last_two_tokens(extractor):
    intent = extractor.extract_intent("lubrificacao na empilhadeira velha do galpao")
    assert intent.operation == "lubrificacao"
    assert intent.equipment == "do galpao"


def test_last_two_tokens_fallback_reads_whole_message(extractor):
    assert extractor.extract_intent("troca de oleo") == Intent(operation="troca de oleo", equipment="de oleo")
    assert extractor.extract_intent("Troca de Óleo.") == Intent(operation="troca de oleo", equipment="de oleo")


def test_empty_brand_dictionary_is_kept():
    custom = IntentExtractor(OperationCatalog(["troca de pneu"]), BrandDictionary([]))
    assert len(custom.brands) == 0
    assert custom.extract_intent("troca de pneu yale G20") == Intent(operation="troca de pneu", equipment="yale g20")


def test_empty_catalog_is_kept():
    custom = IntentExtractor(OperationCatalog([]), BrandDictionary(["hyster"]))
    assert len(custom.catalog) == 0
    assert custom.extract_intent("rolamento H50 hyster") == Intent(operation="", equipment="H50 hyster")


def test_synthetic_troca_operation(extractor):
    intent = extractor.extract_intent("troca de cilindro hidraulico 30 clark")
    assert intent.operation == "troca de cilindro hidraulico"
    assert intent.equipment == "30 clark"


def test_generic_phrase_used_when_fuller_one_absent(extractor):
    intent = extractor.extract_intent("rolamento da roda RRE160 toyota")
    assert intent.operation == "rolamento"
    assert intent.equipment == "RRE160 toyota"


def test_catalog_order_decides_precedence():
    catalog = OperationCatalog(["troca de correia", "correia"])
    custom = IntentExtractor(catalog, BrandDictionary(["still"]))
    assert custom.extract_intent("troca de correia RX20 still").operation == "troca de correia"
    assert custom.extract_intent("correia RX20 still").operation == "correia"


def test_extraction_is_deterministic(extractor):
    text = "Troca de Corrente do mastro H2.5 Hyster"
    assert extractor.extract_intent(text) == extractor.extract_intent(text)


@pytest.mark.parametrize(
    "intent, empty, complete",
    [
        (Intent(), True, False),
        (Intent(operation="oleo"), False, False),
        (Intent(operation="oleo", equipment="hyster"), False, True),
    ],
)
def test_intent_flags(intent, empty, complete):
    assert intent.is_empty is empty
    assert intent.is_complete is complete
