from .country_lookup import DEFAULT_COUNTRY, CountryLookup

__all__ = ["DEFAULT_COUNTRY", "CountryLookup"]
