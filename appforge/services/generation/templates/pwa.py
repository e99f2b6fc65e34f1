"""
Progressive Web App files for web apps with ``features.pwa.enabled``.
"""
from typing import Any, Dict, List

from .common import FileSet, TemplateFile, colors, esc, feature, js_string, meta_description, meta_name, pages, route_path, slugify, to_json

Schema = Dict[str, Any]

CACHING_STRATEGIES = ("cache-first", "network-first", "stale-while-revalidate")
ICON_SIZES = (72, 96, 128, 144, 152, 192, 384, 512)
MASKABLE_SIZES = (192, 512)


def pwa_enabled(schema: Schema) -> bool:
    config = feature(schema, "pwa")
    return bool(config and config.get("enabled"))


def generate_pwa_files(schema: Schema) -> List[TemplateFile]:
    files = FileSet()
    files.add("public/manifest.json", manifest_json(schema), ("meta", "features.pwa", "design.colors"))
    config = feature(schema, "pwa") or {}
    service_worker = config.get("serviceWorker") if isinstance(config.get("serviceWorker"), dict) else {}
    if service_worker.get("enabled", True):
        page_ids = tuple(f"page:{p.get('id')}" for p in pages(schema))
        files.add("public/sw.js", service_worker_js(schema), ("meta", "features.pwa", "pages") + page_ids)
    files.add("public/offline.html", offline_html(schema), ("meta",))
    files.add("src/components/PWAInstallButton.tsx", INSTALL_BUTTON_TSX)
    return files.files


def manifest_json(schema: Schema) -> str:
    config = feature(schema, "pwa") or {}
    palette = colors(schema)
    name = config.get("name") or meta_name(schema)
    icons = config.get("icons") if isinstance(config.get("icons"), list) and config.get("icons") else [
        {
            "src": f"/icons/icon-{size}x{size}.png",
            "sizes": f"{size}x{size}",
            "type": "image/png",
            "purpose": "any maskable" if size in MASKABLE_SIZES else "any",
        }
        for size in ICON_SIZES
    ]
    manifest = {
        "name": name,
        "short_name": config.get("shortName") or name.split(" ")[0] or "App",
        "description": config.get("description") or meta_description(schema) or "A progressive web application",
        "start_url": config.get("startUrl") or "/",
        "display": config.get("display") or "standalone",
        "background_color": config.get("backgroundColor") or palette["background"],
        "theme_color": config.get("themeColor") or palette["primary"],
        "orientation": config.get("orientation") or "portrait-primary",
        "scope": "/",
        "icons": icons,
        "categories": ["productivity", "utilities"],
        "prefer_related_applications": False,
    }
    return to_json(manifest)


def service_worker_js(schema: Schema) -> str:
    config = feature(schema, "pwa") or {}
    service_worker = config.get("serviceWorker") if isinstance(config.get("serviceWorker"), dict) else {}
    strategy = service_worker.get("cachingStrategy")
    if strategy not in CACHING_STRATEGIES:
        strategy = "stale-while-revalidate"

    precache = ["/", "/offline.html", "/manifest.json"]
    for page in pages(schema):
        path = route_path(page.get("path"))
        if path not in precache:
            precache.append(path)
    precache_lines = "\n".join(f"  {js_string(path)}," for path in precache)

    return f"""// Service worker for {meta_name(schema)}
// Caching strategy: {strategy}

const CACHE_NAME = {js_string(slugify(meta_name(schema), default="app") + "-cache-v1")};
const OFFLINE_URL = '/offline.html';

const PRECACHE_ASSETS = [
{precache_lines}
];

self.addEventListener('install', (event) => {{
  event.waitUntil(
    caches.open(CACHE_NAME)
      .then((cache) => cache.addAll(PRECACHE_ASSETS))
      .then(() => self.skipWaiting())
  );
}});

self.addEventListener('activate', (event) => {{
  event.waitUntil(
    caches.keys()
      .then((names) => Promise.all(names.filter((name) => name !== CACHE_NAME).map((name) => caches.delete(name))))
      .then(() => self.clients.claim())
  );
}});

function cacheResponse(request, response) {{
  if (response && response.status === 200 && response.type === 'basic') {{
    const copy = response.clone();
    caches.open(CACHE_NAME).then((cache) => cache.put(request, copy));
  }}
  return response;
}}

self.addEventListener('fetch', (event) => {{
  if (event.request.method !== 'GET' || !event.request.url.startsWith(self.location.origin)) {{
    return;
  }}

  if (event.request.mode === 'navigate') {{
    event.respondWith(fetch(event.request).catch(() => caches.match(OFFLINE_URL)));
    return;
  }}

{_STRATEGY_HANDLERS[strategy]}
}});
"""


_STRATEGY_HANDLERS = {
    "cache-first": """  event.respondWith(
    caches.match(event.request).then((cached) => cached || fetch(event.request).then((response) => cacheResponse(event.request, response)))
  );""",
    "network-first": """  event.respondWith(
    fetch(event.request)
      .then((response) => cacheResponse(event.request, response))
      .catch(() => caches.match(event.request))
  );""",
    "stale-while-revalidate": """  event.respondWith(
    caches.match(event.request).then((cached) => {
      const network = fetch(event.request)
        .then((response) => cacheResponse(event.request, response))
        .catch(() => cached);
      return cached || network;
    })
  );""",
}


def offline_html(schema: Schema) -> str:
    name = esc(meta_name(schema))
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Offline | {name}</title>
    <style>
      body {{ font-family: system-ui, sans-serif; display: flex; min-height: 100vh; align-items: center; justify-content: center; margin: 0; text-align: center; }}
      button {{ margin-top: 1.5rem; padding: 0.75rem 1.5rem; border-radius: 0.5rem; border: 1px solid currentColor; background: none; cursor: pointer; }}
    </style>
  </head>
  <body>
    <main>
      <h1>You're offline</h1>
      <p>{name} needs a connection for this page. Check your network and try again.</p>
      <button onclick="window.location.reload()">Try again</button>
    </main>
  </body>
</html>
"""


INSTALL_BUTTON_TSX = """import { useEffect, useState } from 'react'

type BeforeInstallPromptEvent = Event & {
  prompt: () => Promise<void>
  userChoice: Promise<{ outcome: 'accepted' | 'dismissed' }>
}

export default function PWAInstallButton({ className = '' }: { className?: string }) {
  const [installEvent, setInstallEvent] = useState<BeforeInstallPromptEvent | null>(null)

  useEffect(() => {
    const handler = (event: Event) => {
      event.preventDefault()
      setInstallEvent(event as BeforeInstallPromptEvent)
    }
    window.addEventListener('beforeinstallprompt', handler)
    return () => window.removeEventListener('beforeinstallprompt', handler)
  }, [])

  if (!installEvent) return null

  const install = async () => {
    await installEvent.prompt()
    await installEvent.userChoice
    setInstallEvent(null)
  }

  return (
    <button className={['btn', 'btn-outline', 'btn-sm', className].filter(Boolean).join(' ')} onClick={install}>
      Install app
    </button>
  )
}
"""
