"""Versioned in-page DOM extraction.

The page side installs `globalThis.__agentibilityExtract` once per document (and
re-installs when the version changes). Python talks to it through one structured
request/response pair:

    request:  {"v": 1, "op": "overview"|"query"|"section"|"elements", ...op params}
    response: {"v": 1, "ok": true, "result": {...}} | {"v": 1, "ok": false, "error": "..."}
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from ..page import PageError

if TYPE_CHECKING:
    from ..page import Page

EXTRACT_SCRIPT_VERSION = 1

EXTRACTION_OPS = ("overview", "query", "section", "elements")

# NOTE: self-contained and idempotent; safe to evaluate on every call.
EXTRACT_SCRIPT_SOURCE = r"""
(() => {
  const VERSION = 1;
  const g = globalThis;
  if (g.__agentibilityExtract && g.__agentibilityExtract.version === VERSION) return;

  const HEADINGS = 'h1, h2, h3, h4, h5, h6';
  const BUTTONS = 'button, [role="button"], input[type="submit"], input[type="button"]';
  const TYPE_SELECTORS = {
    headings: HEADINGS,
    links: 'a[href]',
    buttons: BUTTONS,
    forms: 'form',
    tables: 'table',
    images: 'img',
  };
  const LANDMARKS = {
    banner: ['header', '[role="banner"]'],
    main: ['main', '[role="main"]'],
    navigation: ['nav', '[role="navigation"]'],
    complementary: ['aside', '[role="complementary"]'],
    contentinfo: ['footer', '[role="contentinfo"]'],
    search: ['[role="search"]', 'form[role="search"]'],
    form: ['form[aria-label]', 'form[aria-labelledby]', '[role="form"]'],
    region: ['[role="region"]', 'section[aria-label]', 'section[aria-labelledby]'],
  };
  const INTERACTIVE = ['button', 'a', 'input', 'select', 'textarea'];

  const trimText = (el) => (el && el.textContent ? el.textContent.trim() : '');

  function labelledByText(el) {
    const ids = (el.getAttribute('aria-labelledby') || '').split(/\s+/).filter(Boolean);
    const parts = ids.map((id) => trimText(document.getElementById(id))).filter(Boolean);
    return parts.length ? parts.join(' ') : null;
  }

  function accessibleName(el) {
    const labelled = labelledByText(el);
    if (labelled) return labelled;
    const aria = el.getAttribute('aria-label');
    if (aria) return aria;
    if (el.id) {
      const label = document.querySelector('label[for="' + CSS.escape(el.id) + '"]');
      if (label) return trimText(label);
    }
    const title = el.getAttribute('title');
    if (title) return title;
    if (el.tagName === 'IMG' && el.getAttribute('alt')) return el.getAttribute('alt');
    if (el.tagName === 'BUTTON' || el.tagName === 'A') {
      const text = trimText(el);
      if (text) return text.substring(0, 100);
    }
    return null;
  }

  function structure(el, depth, level) {
    if (level >= depth) return null;
    const tag = el.tagName.toLowerCase();
    const role = el.getAttribute('role') || '';
    const classes = typeof el.className === 'string'
      ? el.className.split(/\s+/).filter(Boolean).slice(0, 3).join(' ')
      : '';
    const attrs = [];
    if (el.id) attrs.push('id="' + el.id + '"');
    if (role) attrs.push('role="' + role + '"');
    if (classes) attrs.push('class="' + classes + '"');
    if (INTERACTIVE.includes(tag) || role) {
      const label = accessibleName(el);
      if (label) attrs.push('label="' + label + '"');
    }
    if (tag === 'input') {
      attrs.push('type="' + (el.getAttribute('type') || 'text') + '"');
      const name = el.getAttribute('name');
      if (name) attrs.push('name="' + name + '"');
    }
    const head = '<' + tag + (attrs.length ? ' ' + attrs.join(' ') : '');
    const children = [];
    for (const child of el.children) {
      const rendered = structure(child, depth, level + 1);
      if (rendered) children.push(rendered);
    }
    if (!children.length) return head + ' />';
    return head + '>\n' + children.join('\n') + '\n</' + tag + '>';
  }

  function text(el, limit) {
    const walker = document.createTreeWalker(el, NodeFilter.SHOW_TEXT, null);
    const out = [];
    let used = 0;
    while (walker.nextNode()) {
      const chunk = walker.currentNode.textContent.trim();
      if (!chunk) continue;
      if (limit > 0 && used + chunk.length > limit) {
        const remaining = limit - used;
        if (remaining > 0) out.push(chunk.substring(0, remaining) + '...');
        break;
      }
      out.push(chunk);
      used += chunk.length;
    }
    return out.join(' ');
  }

  function overview() {
    const landmarks = [];
    for (const [role, selectors] of Object.entries(LANDMARKS)) {
      for (const sel of selectors) {
        let found;
        try { found = document.querySelectorAll(sel); } catch (e) { continue; }
        for (const el of found) {
          landmarks.push({role, label: labelledByText(el) || el.getAttribute('aria-label') || null});
        }
      }
    }
    const count = (sel) => document.querySelectorAll(sel).length;
    return {
      title: document.title || '',
      url: window.location.href,
      landmarks,
      counts: {
        headings: count(HEADINGS),
        links: count('a[href]'),
        buttons: count(BUTTONS),
        inputs: count('input, textarea, select'),
        images: count('img'),
        tables: count('table'),
        forms: count('form'),
      },
    };
  }

  function query(req) {
    const found = document.querySelectorAll(req.selector);
    if (!found.length) return {elements: [], count: 0};
    if (req.extract === 'text') {
      return {text: Array.from(found).map((el) => text(el, req.limit)).join('\n\n'), count: found.length};
    }
    const elements = [];
    for (const el of found) {
      const rendered = structure(el, req.depth, 0);
      if (rendered) elements.push(rendered);
    }
    return {elements, count: found.length};
  }

  function headingLevel(el) {
    return el && /^H[1-6]$/i.test(el.tagName) ? parseInt(el.tagName[1], 10) : 0;
  }

  function section(req) {
    const needle = String(req.name || '').toLowerCase();
    let heading = null;
    for (const h of document.querySelectorAll(HEADINGS)) {
      if (trimText(h).toLowerCase().includes(needle)) { heading = h; break; }
    }
    if (!heading) return {error: 'Section not found: ' + req.name, count: 0};
    const level = headingLevel(heading);
    // Wikipedia-style wrappers: <div class="mw-heading"><h2>..</h2></div>
    const wrapped = heading.parentElement && heading.parentElement.classList.contains('mw-heading');
    let node = (wrapped ? heading.parentElement : heading).nextElementSibling;
    const content = [];
    while (node) {
      const probe = node.classList && node.classList.contains('mw-heading') ? node.querySelector(HEADINGS) : node;
      const probeLevel = headingLevel(probe);
      if (probeLevel && probeLevel <= level) break;
      content.push(node);
      node = node.nextElementSibling;
    }
    if (!content.length) return {text: '', count: 0};
    const container = document.createElement('div');
    for (const el of content) container.appendChild(el.cloneNode(true));
    if (req.extract === 'text') return {text: text(container, req.limit), count: content.length};
    const rendered = structure(container, req.depth, 0);
    return {elements: rendered ? [rendered] : [], count: content.length};
  }

  function describe(el, type) {
    const item = {};
    if (el.id) item.id = el.id;
    if (type === 'headings') {
      item.level = headingLevel(el);
      item.text = trimText(el).substring(0, 200);
    } else if (type === 'links') {
      item.text = trimText(el).substring(0, 100) || accessibleName(el) || '[no text]';
      item.href = el.getAttribute('href');
    } else if (type === 'buttons') {
      item.text = el.tagName === 'INPUT'
        ? (el.value || el.getAttribute('aria-label') || '[no text]')
        : (trimText(el).substring(0, 100) || accessibleName(el) || '[no text]');
    } else if (type === 'forms') {
      item.action = el.getAttribute('action') || '';
      item.method = el.getAttribute('method') || 'get';
      item.name = accessibleName(el);
      item.fields = Array.from(el.querySelectorAll('input, textarea, select')).map((field) => {
        const tag = field.tagName.toLowerCase();
        const info = {
          type: tag === 'input' ? (field.getAttribute('type') || 'text') : tag,
          name: field.getAttribute('name') || '',
          label: accessibleName(field),
        };
        if (field.id) info.id = field.id;
        return info;
      });
    } else if (type === 'tables') {
      item.rows = el.querySelectorAll('tr').length;
      const firstRow = el.querySelector('tr');
      item.cols = firstRow ? firstRow.querySelectorAll('td, th').length : 0;
      const caption = el.querySelector('caption');
      item.caption = caption ? trimText(caption) || null : null;
      const headers = Array.from(el.querySelectorAll('th'));
      if (headers.length) item.headers = headers.slice(0, 10).map(trimText);
    } else if (type === 'images') {
      item.alt = el.getAttribute('alt') || null;
      item.src = el.getAttribute('src');
    }
    return item;
  }

  function elements(req) {
    const selector = TYPE_SELECTORS[req.type];
    if (!selector) return {error: 'Unknown type: ' + req.type, elements: [], count: 0, type: req.type};
    const found = document.querySelectorAll(selector);
    const limit = req.limit > 0 ? Math.min(req.limit, found.length) : found.length;
    const items = [];
    for (let i = 0; i < limit; i++) items.push(describe(found[i], req.type));
    return {elements: items, count: found.length, type: req.type};
  }

  const OPS = {overview, query, section, elements};

  g.__agentibilityExtract = {
    version: VERSION,
    run(request) {
      const op = OPS[request && request.op];
      if (!op) return {v: VERSION, ok: false, error: 'Unknown extraction op: ' + (request && request.op)};
      try {
        return {v: VERSION, ok: true, result: op(request)};
      } catch (e) {
        return {v: VERSION, ok: false, error: String(e && e.message ? e.message : e)};
      }
    },
  };
})();
"""


def build_request(op: str, **params: Any) -> dict[str, Any]:
    if op not in EXTRACTION_OPS:
        raise ValueError(f"Unknown extraction op: {op}")
    return {"v": EXTRACT_SCRIPT_VERSION, "op": op, **params}


def build_expression(request: dict[str, Any]) -> str:
    return (
        "(() => {\n"
        f"{EXTRACT_SCRIPT_SOURCE}\n"
        f"return globalThis.__agentibilityExtract.run({json.dumps(request, ensure_ascii=False)});\n"
        "})()"
    )


def run_extraction(page: Page, op: str, **params: Any) -> dict[str, Any]:
    """Send one structured extraction request to the page and return its result."""
    request = build_request(op, **params)
    response = page.evaluate(build_expression(request))
    if not isinstance(response, dict):
        raise PageError(f"Extraction returned no response for op={op}")
    if response.get("v") != EXTRACT_SCRIPT_VERSION:
        raise PageError(f"Extraction version mismatch: expected {EXTRACT_SCRIPT_VERSION}, got {response.get('v')}")
    if not response.get("ok"):
        raise PageError(str(response.get("error") or f"Extraction failed for op={op}"))
    result = response.get("result")
    return result if isinstance(result, dict) else {}
