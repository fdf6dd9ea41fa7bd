from pydantic import BaseModel


class BillingAddress(BaseModel):
    given_name: str
    family_name: str
    address_line1: str = ""
    address_line2: str = ""
    locality: str = ""
    administrative_area: str = ""
    postal_code: str = ""
    country_code: str = ""
    phone_number: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.given_name} {self.family_name}".strip()


class RedirectUrls(BaseModel):
    return_url: str
    exception_url: str
    cancel_url: str = ""
