"""
Data enrichment add-ons.

Add-ons are attached to an event under `keen.addons` and tell the API to
derive extra properties server-side (geo location from an IP address, parsed
user agent, URL components, referrer classification).

Example:
    >>> client.add_event(
    ...     "pageviews",
    ...     {"ip_address": "8.8.8.8", "ua": "Mozilla/5.0 ..."},
    ...     add_ons=[
    ...         IpToGeo("ip_address", "ip_geo_info"),
    ...         UserAgentParser("ua", "parsed_user_agent"),
    ...     ],
    ... )
"""

from typing import Dict, Any, Optional


class EventAddOn:
    """
    Base add-on: an identifier, named input properties and an output property.

    Input values are event property names (dotted paths allowed), not
    literal values.
    """

    def __init__(
        self,
        name: str,
        input_parameters: Optional[Dict[str, str]] = None,
        output: Optional[str] = None
    ):
        self.name = name
        self.input_parameters = dict(input_parameters or {})
        self.output = output

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "input": dict(self.input_parameters),
            "output": self.output,
        }

    def __repr__(self):
        return f"{self.__class__.__name__}(input={self.input_parameters!r}, output={self.output!r})"

    def __eq__(self, other):
        if not isinstance(other, EventAddOn):
            return NotImplemented
        return self.to_json() == other.to_json()


class IpToGeo(EventAddOn):
    """keen:ip_to_geo - geo location from an IP address property."""

    INPUT_NAME = "ip"

    def __init__(self, ip_property: Optional[str] = None, output: Optional[str] = None):
        super().__init__("keen:ip_to_geo", {self.INPUT_NAME: ip_property or ""}, output)

    @property
    def ip_property(self) -> str:
        return self.input_parameters[self.INPUT_NAME]


class UserAgentParser(EventAddOn):
    """keen:ua_parser - browser, OS and device from a user agent string."""

    INPUT_NAME = "ua_string"

    def __init__(self, ua_property: Optional[str] = None, output: Optional[str] = None):
        super().__init__("keen:ua_parser", {self.INPUT_NAME: ua_property or ""}, output)

    @property
    def ua_property(self) -> str:
        return self.input_parameters[self.INPUT_NAME]


class UrlParser(EventAddOn):
    """keen:url_parser - protocol, domain, path and query of a URL."""

    INPUT_NAME = "url"

    def __init__(self, url_property: Optional[str] = None, output: Optional[str] = None):
        super().__init__("keen:url_parser", {self.INPUT_NAME: url_property or ""}, output)

    @property
    def url_property(self) -> str:
        return self.input_parameters[self.INPUT_NAME]


class ReferrerParser(EventAddOn):
    """keen:referrer_parser - referrer medium and source, needs both URLs."""

    def __init__(
        self,
        referrer_property: Optional[str] = None,
        page_property: Optional[str] = None,
        output: Optional[str] = None
    ):
        super().__init__(
            "keen:referrer_parser",
            {
                "referrer_url": referrer_property or "",
                "page_url": page_property or "",
            },
            output
        )
