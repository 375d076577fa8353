import pytest

from petscan_engine.catalog import IngredientCatalog


@pytest.fixture(scope="session")
def catalog():
    return IngredientCatalog.from_directory()


@pytest.fixture
def small_catalog():
    return IngredientCatalog.from_data(
        ingredients=[
            {"id": "chicken", "commonName": "Chicken", "riskLevel": "safe", "typicalFunction": "protein source", "processingLevel": 1},
            {"id": "chicken_meal", "commonName": "Chicken Meal", "riskLevel": "safe", "typicalFunction": "protein source", "processingLevel": 3},
            {"id": "brown_rice", "commonName": "Brown Rice", "riskLevel": "safe", "typicalFunction": "carbohydrate"},
            {"id": "xylitol", "commonName": "Xylitol", "riskLevel": "toxic", "typicalFunction": "sweetener"},
        ],
        rules=[
            {
                "id": "xylitol-dog",
                "ingredientId": "xylitol",
                "appliesTo": {"species": ["dog"], "categories": ["food", "treat", "cosmetic"]},
                "severity": "critical",
                "explain": "Xylitol is toxic to dogs.",
                "scoreImpact": -60,
            }
        ],
        synonyms={
            "chicken": "chicken",
            "chicken meal": "chicken_meal",
            "brown rice": "brown_rice",
            "xylitol": "xylitol",
        },
    )
