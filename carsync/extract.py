# carsync/extract.py
"""Detail-page extraction.

A page is read by an ordered chain of strategies. Each one looks at a single
kind of data carrier (embedded Next.js flight payload, schema.org JSON-LD,
meta tags, plain DOM) and returns a fragment dict. Fragments are merged
field by field and the first strategy to supply a value wins.
"""
import json
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urldefrag

from .browser import RenderedPage
from .exceptions import ExtractionFailed
from .identity import contact_channel_for, native_id_from_url
from .schemas import EXTRACTION_FIELDS, PartialRecord
from .sites import SiteConfig
from .utils import clean_text, logger, parse_price

# raw price text, normalised by the extractor into price_display/price_numeric
PRICE_TEXT = "price_text"
FRAGMENT_FIELDS = frozenset(EXTRACTION_FIELDS) | {PRICE_TEXT}

_FLIGHT_RE = re.compile(r'self\.__next_f\.push\(\[1,"(.+?)"\]\)', re.S)
_META_PRICE_RE = re.compile(r"AED\s*(\d(?:[\d,\u00a0\u202f ]*\d)?)", re.I)
_SPEC_HINTS = (
    ("gcc", "GCC Specs"),
    ("us spec", "US Specs"),
    ("american", "US Specs"),
    ("european", "European Specs"),
)


def _absolute(src: Optional[str]) -> Optional[str]:
    if not src or not isinstance(src, str):
        return None
    src = src.strip().split(" ")[0]
    if src.startswith("//"):
        return "https:" + src
    return src


def _dig(data, *path):
    for key in path:
        if isinstance(data, list):
            if not isinstance(key, int) or key >= len(data):
                return None
        elif not isinstance(data, dict) or key not in data:
            return None
        data = data[key]
    return data


def find_all_json_ld(soup) -> List[dict]:
    data = []
    for tag in soup.find_all("script", type=lambda v: v and "ld+json" in v):
        txt = (tag.string or tag.get_text() or "").strip()
        if not txt:
            continue
        try:
            obj = json.loads(txt)
        except json.JSONDecodeError:
            continue
        items = obj if isinstance(obj, list) else [obj]
        for item in items:
            if not isinstance(item, dict):
                continue
            data.append(item)
            graph = item.get("@graph")
            if isinstance(graph, list):
                data.extend(g for g in graph if isinstance(g, dict))
    return data


def infer_regional_spec(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lowered = text.lower()
    for needle, label in _SPEC_HINTS:
        if needle in lowered:
            return label
    return None


class ExtractionStrategy:
    name = "base"

    def __init__(self, site: SiteConfig):
        self.site = site

    def extract(self, page: RenderedPage) -> Dict[str, object]:
        raise NotImplementedError


class NextFlightStrategy(ExtractionStrategy):
    """Seller and media details from ``self.__next_f.push`` script payloads."""

    name = "next_flight"

    def _payloads(self, soup):
        decoder = json.JSONDecoder()
        for script in soup.find_all("script"):
            content = script.string or script.get_text() or ""
            if "__next_f" not in content:
                continue
            for match in _FLIGHT_RE.finditer(content):
                try:
                    text = json.loads('"' + match.group(1) + '"')
                except json.JSONDecodeError:
                    continue
                if '"en"' not in text or '"user"' not in text:
                    continue
                start = text.find("{")
                while start != -1:
                    try:
                        obj, _ = decoder.raw_decode(text, start)
                    except json.JSONDecodeError:
                        start = text.find("{", start + 1)
                        continue
                    if isinstance(_dig(obj, "en", "user"), dict):
                        yield obj
                        break
                    start = text.find("{", start + 1)

    def extract(self, page):
        for data in self._payloads(page.soup):
            phone = clean_text(_dig(data, "en", "user", "phone"))
            return {
                "seller_name": clean_text(_dig(data, "en", "user", "name")),
                "contact_phone": phone,
                "image_url": _absolute(_dig(data, "media", "pictures", "slideshow_picture", 0)),
                "trim": clean_text(_dig(data, "en", "version", "title")),
                "location": clean_text(_dig(data, "en", "city", "title")),
            }
        return {}


class JsonLdVehicleStrategy(ExtractionStrategy):
    """schema.org Product/Car blocks: price, odometer, year, image, spec hint."""

    name = "json_ld"
    types = {"Product", "Car", "Vehicle"}

    def _vehicle(self, soup):
        for obj in find_all_json_ld(soup):
            kind = obj.get("@type")
            kinds = kind if isinstance(kind, list) else [kind]
            if self.types.intersection(k for k in kinds if isinstance(k, str)):
                return obj
        return None

    def extract(self, page):
        data = self._vehicle(page.soup)
        if data is None:
            return {}
        fragment = {}
        offers = data.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else None
        price = _dig(offers, "price") if isinstance(offers, dict) else None
        if price not in (None, "", 0, "0"):
            fragment[PRICE_TEXT] = str(price)
        mileage = _dig(data, "mileageFromOdometer", "value")
        if mileage is not None:
            try:
                fragment["odometer"] = f"{int(float(mileage)):,} KM"
            except (TypeError, ValueError):
                fragment["odometer"] = clean_text(mileage)
        year = data.get("modelDate") or data.get("vehicleModelDate")
        if year:
            fragment["model_year"] = str(year)
        image = data.get("image")
        if isinstance(image, list):
            image = image[0] if image else None
        if isinstance(image, dict):
            image = image.get("url")
        fragment["image_url"] = _absolute(image) if isinstance(image, str) else None
        fragment["regional_spec"] = infer_regional_spec(data.get("description"))
        return fragment


class MetaTagStrategy(ExtractionStrategy):
    name = "meta_tags"

    def extract(self, page):
        soup = page.soup
        fragment = {}
        desc = soup.find("meta", attrs={"name": "description"})
        if desc and desc.get("content"):
            m = _META_PRICE_RE.search(desc["content"])
            if m:
                fragment[PRICE_TEXT] = f"AED {m.group(1)}"
        og_image = soup.find("meta", property="og:image")
        if og_image and og_image.get("content"):
            fragment["image_url"] = _absolute(og_image["content"])
        return fragment


class DomLabelStrategy(ExtractionStrategy):
    """Last resort: visible labels and per-site selectors."""

    name = "dom_labels"

    def _select_text(self, soup, key):
        selector = self.site.selectors.get(key)
        if not selector:
            return None
        el = soup.select_one(selector)
        return clean_text(el.get_text(" ", strip=True)) if el else None

    @staticmethod
    def _labelled(spans, label):
        for i, span in enumerate(spans[:-1]):
            if span.get_text(strip=True) == label:
                return clean_text(spans[i + 1].get_text(" ", strip=True))
        return None

    def _image(self, soup):
        selectors = self.site.selectors
        if selectors.get("image_source"):
            el = soup.select_one(selectors["image_source"])
            if el and el.get("srcset"):
                return _absolute(el["srcset"])
        if selectors.get("image"):
            el = soup.select_one(selectors["image"])
            if el and el.get("src"):
                return _absolute(el["src"])
        return None

    def _specs(self, soup):
        selectors = self.site.selectors
        if selectors.get("specs"):
            link = soup.select_one(selectors["specs"])
            if link:
                span = link.find("span")
                return clean_text((span or link).get_text(" ", strip=True))
        if selectors.get("specs_title"):
            el = soup.select_one(selectors["specs_title"])
            if el and el.get("title"):
                return clean_text(el["title"])
        return None

    def _trim(self, soup):
        selector = self.site.selectors.get("trim_row")
        if not selector:
            return None
        for li in soup.select(selector):
            if "Vehicle type" in li.get_text(" ", strip=True):
                span = li.select_one("a.text-underline span")
                return clean_text(span.get_text(" ", strip=True)) if span else None
        return None

    def extract(self, page):
        soup = page.soup
        spans = soup.find_all("span")
        return {
            "image_url": self._image(soup),
            "contact_phone": self._select_text(soup, "phone"),
            "model_year": self._labelled(spans, "Model year"),
            "odometer": self._labelled(spans, "Kilometers"),
            "regional_spec": self._specs(soup),
            PRICE_TEXT: self._select_text(soup, "price"),
            "seller_name": self._select_text(soup, "seller"),
            "trim": self._trim(soup),
        }


STRATEGIES = {
    cls.name: cls
    for cls in (NextFlightStrategy, JsonLdVehicleStrategy, MetaTagStrategy, DomLabelStrategy)
}


def merge_fragments(fragments: Iterable[Dict[str, object]]) -> Dict[str, object]:
    merged = {}
    for fragment in fragments:
        for key, value in fragment.items():
            if key not in FRAGMENT_FIELDS or key in merged:
                continue
            if value is None or value == "":
                continue
            merged[key] = value
    return merged


class Extractor:
    def __init__(self, site: SiteConfig, strategies: Optional[List[ExtractionStrategy]] = None):
        self.site = site
        if strategies is None:
            strategies = [STRATEGIES[name](site) for name in site.strategies]
        self.strategies = strategies

    def _fragments(self, page):
        for strategy in self.strategies:
            try:
                fragment = strategy.extract(page)
            except Exception as e:
                logger.warning("Strategy %s failed on %s: %s", strategy.name, page.url, e)
                continue
            if fragment:
                yield fragment

    def extract(self, page: RenderedPage) -> PartialRecord:
        if page is None or not page.html:
            raise ExtractionFailed(getattr(page, "url", None), "empty document")
        if page.soup.select_one(self.site.core_selector) is None:
            raise ExtractionFailed(page.url, f"core block {self.site.core_selector!r} not found")

        merged = merge_fragments(self._fragments(page))
        if not merged:
            raise ExtractionFailed(page.url, "no listing data on page")

        display, numeric = parse_price(merged.pop(PRICE_TEXT, None))
        merged["price_display"] = display
        merged["price_numeric"] = numeric
        if not merged.get("contact_channel_url"):
            merged["contact_channel_url"] = contact_channel_for(merged.get("contact_phone"))
        if not merged.get("location"):
            merged["location"] = self.site.default_location

        canonical_url = urldefrag(page.url)[0]
        return PartialRecord(
            source=self.site.source,
            canonical_url=canonical_url,
            native_id=native_id_from_url(canonical_url, self.site.native_id_pattern),
            **merged,
        )
