"""Vendor name normalization for subscription transactions.

Contact names and bank descriptions for the same vendor vary wildly
("PAYPAL *CANVA", "Canva Pty Ltd", "DIRECT DEBIT CANVA"). The normalizer
maps them to one canonical name using a known-vendor dictionary, with a
title-casing fallback for vendors it does not know.
"""
import re
from types import MappingProxyType
from typing import Mapping, Optional

UNKNOWN_VENDOR = "Unknown Vendor"

# Checked in order; the first alias found anywhere in the text wins
VENDOR_MAPPINGS: Mapping[str, str] = MappingProxyType({
    "SLACK": "Slack",
    "XERO": "Xero",
    "GOOGLE": "Google Workspace",
    "GSUITE": "Google Workspace",
    "G SUITE": "Google Workspace",
    "MSFT": "Microsoft 365",
    "MICROSOFT": "Microsoft 365",
    "CANVA": "Canva",
    "HUBSPOT": "HubSpot",
    "ASANA": "Asana",
    "MONDAY": "Monday.com",
    "NOTION": "Notion",
    "FIGMA": "Figma",
    "ADOBE": "Adobe",
    "DROPBOX": "Dropbox",
    "ZOOM": "Zoom",
    "ATLASSIAN": "Atlassian",
    "GITHUB": "GitHub",
    "AWS": "Amazon Web Services",
    "AMAZON WEB": "Amazon Web Services",
    "AZURE": "Microsoft Azure",
    "DIGITALOCEAN": "DigitalOcean",
    "MAILCHIMP": "Mailchimp",
    "INTERCOM": "Intercom",
    "ZENDESK": "Zendesk",
    "STRIPE": "Stripe",
    "SHOPIFY": "Shopify",
    "QUICKBOOKS": "QuickBooks",
    "GUSTO": "Gusto",
    "DEPUTY": "Deputy",
    "EMPLOYMENT HERO": "Employment Hero",
    "DOCUSIGN": "DocuSign",
    "CALENDLY": "Calendly",
    "LOOM": "Loom",
    "MIRO": "Miro",
    "AIRTABLE": "Airtable",
    "GRAMMARLY": "Grammarly",
    "LASTPASS": "LastPass",
    "1PASSWORD": "1Password",
    "CLOUDFLARE": "Cloudflare",
    "VERCEL": "Vercel",
    "NETLIFY": "Netlify",
    "TWILIO": "Twilio",
    "SENDGRID": "SendGrid",
    "MIXPANEL": "Mixpanel",
    "HOTJAR": "Hotjar",
    "LINKEDIN": "LinkedIn",
    "SEEK": "SEEK",
    "OPENAI": "OpenAI",
    "CHATGPT": "ChatGPT",
    "ANTHROPIC": "Anthropic",
    "CLAUDE": "Anthropic Claude",
    "ZAPIER": "Zapier",
    "CALXA": "Calxa",
    "LUCID": "Lucid Software",
    "LUCIDCHART": "Lucid Software",
    "SYNC": "Sync.com",
    "TELSTRA": "Telstra",
    "VIMEO": "Vimeo",
    "PLAUD": "Plaud.ai",
    "FIREFLIES": "Fireflies.ai",
    "AUDIBLE": "Audible",
    "PADDLE": "Paddle",
    "PADDLENET": "Paddle",
    "CMM": "CMM",
    "SITESATSCALE": "Sites at Scale",
    "APPLE": "Apple",
    "APPLE.COM": "Apple",
})

# Payment-rail prefixes stripped once from the start of the text
_NOISE_PREFIX = re.compile(
    r"^(DIRECT DEBIT|DD|PAYPAL \*|PAY\*|SQ \*|STRIPE|RECURRING|SUBSCRIPTION|"
    r"PAYMENT TO|PAID TO|TRANSFER TO)\s*",
    re.IGNORECASE,
)
_WORD_SPLIT = re.compile(r"[\s\-_*]+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def vendor_key(vendor_name: str) -> str:
    """Grouping key: lowercase alphanumerics only, so 'Sync.com' and 'synccom' collide."""
    return _NON_ALNUM.sub("", vendor_name.lower())


class VendorNormalizer:
    """Maps (contact name, description) pairs to canonical vendor names."""

    def __init__(self, mappings: Mapping[str, str] = VENDOR_MAPPINGS):
        self.mappings = mappings

    def _match(self, text: str) -> Optional[str]:
        for pattern, vendor_name in self.mappings.items():
            if pattern.upper() in text:
                return vendor_name
        return None

    def normalize(self, contact_name: Optional[str], description: Optional[str]) -> str:
        contact_name = contact_name or ""
        description = description or ""

        text = (contact_name or description).upper().strip()
        cleaned = _NOISE_PREFIX.sub("", text, count=1)

        known = self._match(cleaned)
        if known:
            return known

        if contact_name and description and contact_name != description:
            known = self._match(description.upper().strip())
            if known:
                return known

        if contact_name.strip():
            return " ".join(_capitalize(word) for word in contact_name.split())

        words = [w for w in _WORD_SPLIT.split(cleaned) if len(w) > 2]
        if words:
            return " ".join(_capitalize(w) for w in words[:3])

        return description[:50] or UNKNOWN_VENDOR
