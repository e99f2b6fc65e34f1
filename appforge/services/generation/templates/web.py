"""
Web app generator: a Vite + React + React Router project.

Page bodies are picked by sniffing the page name against ``PAGE_KINDS``;
the first matching keyword wins. Pages with no match render their
components, or a generic layout when they have none.
"""
import json
from typing import Any, Dict, List, Optional, Tuple

from .common import (
    DESIGN_SOURCES,
    FileSet,
    TemplateFile,
    auth_enabled,
    css_variables,
    dark_overrides,
    database_enabled,
    esc,
    feature,
    footer_component,
    google_fonts_import,
    is_home,
    js_string,
    meta_description,
    meta_name,
    navigation_items,
    page_components,
    page_sources,
    pages,
    pascal_case,
    prop_default,
    route_path,
    slugify,
    to_json,
)
from .pwa import generate_pwa_files, pwa_enabled

Schema = Dict[str, Any]

RESERVED_COMPONENTS = {"App", "Index", "Login", "Signup", "NotFound", "Header", "Footer", "Button", "Card"}

# Lookup order matters: "pricing plans" is a pricing page, not a feature page
PAGE_KINDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("about",), "about"),
    (("contact",), "contact"),
    (("service",), "services"),
    (("pricing", "plan"), "pricing"),
    (("feature",), "features"),
    (("blog", "post", "article"), "blog"),
    (("faq", "help"), "faq"),
    (("team", "member"), "team"),
    (("portfolio", "work", "project"), "portfolio"),
    (("testimonial", "review"), "testimonials"),
)

CARD_SECTIONS: Dict[str, Tuple[str, List[Dict[str, str]]]] = {
    "about": ("Our Values", [
        {"title": "Innovation", "description": "We constantly push boundaries and embrace new ideas."},
        {"title": "Integrity", "description": "We conduct business with honesty and transparency."},
        {"title": "Excellence", "description": "We strive for the highest quality in everything we do."},
    ]),
    "services": ("What We Offer", [
        {"title": "Consulting", "description": "Strategy sessions that turn goals into a concrete roadmap."},
        {"title": "Implementation", "description": "Hands-on delivery by a team that ships every week."},
        {"title": "Support", "description": "Ongoing help with response times measured in hours."},
    ]),
    "pricing": ("Simple, transparent pricing", [
        {"title": "Starter", "description": "$9/month. Up to 3 projects and email support."},
        {"title": "Pro", "description": "$29/month. Unlimited projects and priority support."},
        {"title": "Enterprise", "description": "Custom pricing. SSO, audit logs and a dedicated manager."},
    ]),
    "features": ("Everything you need", [
        {"title": "Fast setup", "description": "Go from sign-up to first result in under five minutes."},
        {"title": "Collaboration", "description": "Invite teammates and work on the same data in real time."},
        {"title": "Analytics", "description": "Dashboards that show what changed and why."},
    ]),
    "blog": ("Latest articles", [
        {"title": "Getting started in 10 minutes", "description": "A walkthrough of the first steps for new users."},
        {"title": "What we learned shipping v2", "description": "Notes from six months of customer interviews."},
        {"title": "Designing for accessibility", "description": "Practical checks every team can run today."},
    ]),
    "faq": ("Frequently asked questions", [
        {"title": "How do I get started?", "description": "Create an account and follow the onboarding checklist."},
        {"title": "Can I cancel anytime?", "description": "Yes. Plans are month to month with no lock-in."},
        {"title": "Do you offer refunds?", "description": "We offer a 30-day money-back guarantee."},
    ]),
    "team": ("Meet the team", [
        {"title": "Amara Okafor", "description": "Co-founder and CEO"},
        {"title": "Daniel Kim", "description": "Head of Engineering"},
        {"title": "Lucia Fernandez", "description": "Lead Designer"},
    ]),
    "portfolio": ("Selected work", [
        {"title": "Northwind Rebrand", "description": "Identity and web refresh for a logistics company."},
        {"title": "Harbor Mobile", "description": "A booking app used by 40,000 travellers a month."},
        {"title": "Atlas Dashboard", "description": "Internal analytics for a 200-person sales team."},
    ]),
    "testimonials": ("What our customers say", [
        {"title": "Sarah Chen, Head of Product", "description": "\"We cut our release cycle in half within a month.\""},
        {"title": "Marcus Webb, Founder", "description": "\"The support team answers before I finish typing.\""},
        {"title": "Priya Nair, CTO", "description": "\"It replaced three tools we were paying for.\""},
    ]),
}


def page_kind(page: Dict[str, Any]) -> Optional[str]:
    name = str(page.get("name") or "").lower()
    for keywords, kind in PAGE_KINDS:
        if any(keyword in name for keyword in keywords):
            return kind
    return None


def base_component_name(page: Dict[str, Any]) -> str:
    return pascal_case(str(page.get("name") or page.get("id") or ""), default="Page")


def component_names(page_list: List[Dict[str, Any]]) -> Dict[int, str]:
    """Unique React component name per page (keyed by list position)."""
    names: Dict[int, str] = {}
    used = set(RESERVED_COMPONENTS)
    for index, page in enumerate(page_list):
        base = base_component_name(page)
        name, counter = base, 2
        while name in used:
            name = f"{base}{counter}"
            counter += 1
        used.add(name)
        names[index] = name
    return names


def generate_web(schema: Schema) -> List[TemplateFile]:
    files = FileSet()
    all_pages = pages(schema)
    home_index = next((i for i, p in enumerate(all_pages) if is_home(p)), None)
    names = component_names(all_pages)
    with_auth = auth_enabled(schema)
    with_supabase = with_auth or database_enabled(schema)
    with_pwa = pwa_enabled(schema)

    files.add("package.json", _package_json(schema, with_supabase),
              ("meta", "features.auth", "features.database"))
    files.add("index.html", _index_html(schema, with_pwa), ("meta", "features.pwa"))
    files.add("vite.config.ts", VITE_CONFIG)
    files.add("tsconfig.json", TSCONFIG)
    files.add("src/main.tsx", _main_tsx(with_pwa), ("features.pwa",))
    files.add("src/index.css", _index_css(schema), DESIGN_SOURCES)

    routes: List[Tuple[str, str, str]] = []
    home = all_pages[home_index] if home_index is not None else None
    files.add(
        "src/pages/Index.tsx",
        _page_tsx(schema, home, "Index"),
        page_sources(schema, home, "meta") if home else ("meta",),
    )
    routes.append(("Index", "./pages/Index", "/"))

    for index, page in enumerate(all_pages):
        if index == home_index:
            continue
        name = names[index]
        # a numbered name depends on the pages before it
        extra = ("pages",) if name != base_component_name(page) else ()
        path = files.add(f"src/pages/{name}.tsx", _page_tsx(schema, page, name), page_sources(schema, page, *extra))
        routes.append((name, "./" + path[len("src/"):-len(".tsx")], route_path(page.get("path"))))

    if with_auth:
        auth = feature(schema, "auth") or {}
        files.add("src/pages/Login.tsx", _login_tsx(auth), ("features.auth",))
        files.add("src/pages/Signup.tsx", _signup_tsx(auth), ("features.auth",))
        routes.extend([("Login", "./pages/Login", "/login"), ("Signup", "./pages/Signup", "/signup")])
    files.add("src/pages/NotFound.tsx", NOT_FOUND_TSX)

    files.add("src/App.tsx", _app_tsx(routes), ("pages", "features.auth", *(f"page:{p.get('id')}" for p in all_pages)))
    files.add("src/components/Header.tsx", _header_tsx(schema, with_auth),
              ("meta", "structure.navigation", "features.auth"))
    footer = footer_component(schema)
    footer_sources = ("meta", "components.footer") + ((f"component:{footer.get('id')}",) if footer else ())
    files.add("src/components/Footer.tsx", _footer_tsx(schema, footer), footer_sources)
    files.add("src/components/ui/Button.tsx", BUTTON_TSX)
    files.add("src/components/ui/Card.tsx", CARD_TSX)

    if with_supabase:
        files.add("src/lib/supabase.ts", SUPABASE_TS, ("features.auth", "features.database"))
        files.add(".env.example", ENV_EXAMPLE, ("features.auth", "features.database"))

    if with_pwa:
        for pwa_file in generate_pwa_files(schema):
            files.add(pwa_file.path, pwa_file.content, pwa_file.sources)

    return files.files


# =============================================================================
# PROJECT FILES
# =============================================================================

def _package_json(schema: Schema, with_supabase: bool) -> str:
    dependencies = {
        "react": "^18.3.1",
        "react-dom": "^18.3.1",
        "react-router-dom": "^6.26.2",
    }
    if with_supabase:
        dependencies["@supabase/supabase-js"] = "^2.45.4"
    package = {
        "name": slugify(meta_name(schema), default="app"),
        "private": True,
        "version": "0.1.0",
        "type": "module",
        "scripts": {
            "dev": "vite",
            "build": "tsc && vite build",
            "preview": "vite preview",
        },
        "dependencies": dependencies,
        "devDependencies": {
            "@types/react": "^18.3.5",
            "@types/react-dom": "^18.3.0",
            "@vitejs/plugin-react": "^4.3.1",
            "typescript": "^5.5.3",
            "vite": "^5.4.1",
        },
    }
    return to_json(package)


def _index_html(schema: Schema, with_pwa: bool) -> str:
    manifest = '\n    <link rel="manifest" href="/manifest.json" />' if with_pwa else ""
    return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <meta name="description" content="{esc(meta_description(schema))}" />{manifest}
    <title>{esc(meta_name(schema))}</title>
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="/src/main.tsx"></script>
  </body>
</html>
"""


def _main_tsx(with_pwa: bool) -> str:
    register = """
if ('serviceWorker' in navigator) {
  window.addEventListener('load', () => {
    navigator.serviceWorker.register('/sw.js').catch((error) => {
      console.error('Service worker registration failed:', error)
    })
  })
}
""" if with_pwa else ""
    return f"""import React from 'react'
import ReactDOM from 'react-dom/client'
import {{ BrowserRouter }} from 'react-router-dom'
import App from './App'
import './index.css'

ReactDOM.createRoot(document.getElementById('root')!).render(
  <React.StrictMode>
    <BrowserRouter>
      <App />
    </BrowserRouter>
  </React.StrictMode>
)
{register}"""


def _app_tsx(routes: List[Tuple[str, str, str]]) -> str:
    imports = "\n".join(f"import {name} from '{module}'" for name, module, _ in routes)
    seen = set()
    route_lines = []
    for name, _, path in routes:
        if path in seen:
            continue
        seen.add(path)
        route_lines.append(f'          <Route path={js_string(path)} element={{<{name} />}} />')
    return f"""import {{ Routes, Route }} from 'react-router-dom'
import Header from './components/Header'
import Footer from './components/Footer'
{imports}
import NotFound from './pages/NotFound'

export default function App() {{
  return (
    <div className="app">
      <Header />
      <main className="main">
        <Routes>
{chr(10).join(route_lines)}
          <Route path="*" element={{<NotFound />}} />
        </Routes>
      </main>
      <Footer />
    </div>
  )
}}
"""


def _index_css(schema: Schema) -> str:
    return f"""{google_fonts_import(schema)}

{css_variables(schema)}

@media (prefers-color-scheme: dark) {{
{dark_overrides(":root")}
}}

*, *::before, *::after {{ box-sizing: border-box; margin: 0; padding: 0; }}

body {{
  font-family: var(--font-body);
  font-size: var(--font-size-base);
  line-height: var(--line-height);
  color: var(--color-foreground);
  background: var(--color-background);
}}

h1, h2, h3 {{ font-family: var(--font-heading); line-height: 1.2; }}

a {{ color: var(--color-primary); text-decoration: none; }}

.app {{ min-height: 100vh; display: flex; flex-direction: column; }}
.main {{ flex: 1; }}
.container {{ width: 100%; max-width: 1200px; margin: 0 auto; padding: 0 1.5rem; }}
.section {{ padding: var(--spacing-section) 0; }}
.section-muted {{ background: rgba(var(--color-primary-rgb), 0.04); }}
.section-title {{ text-align: center; margin-bottom: 2.5rem; font-size: 2rem; }}
.muted {{ color: var(--color-muted); }}
.center {{ text-align: center; }}
.grid {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(260px, 1fr)); gap: var(--spacing-gap); }}

.page-header {{ padding: 4rem 0 2rem; text-align: center; }}
.page-header h1 {{ font-size: clamp(2rem, 4vw, 3rem); margin-bottom: 0.75rem; }}

.hero {{ text-align: center; padding: var(--spacing-section) 0; }}
.hero h1, .hero h2 {{ font-size: clamp(2.25rem, 5vw, 3.5rem); margin-bottom: 1rem; }}
.hero p {{ font-size: 1.25rem; margin-bottom: 2rem; }}

.header {{ position: sticky; top: 0; z-index: 40; background: var(--color-background); border-bottom: 1px solid var(--color-border); }}
.header-inner {{ display: flex; align-items: center; justify-content: space-between; height: 4rem; }}
.header-logo {{ font-family: var(--font-heading); font-weight: 700; color: var(--color-foreground); }}
.header-nav {{ display: flex; gap: var(--spacing-gap); align-items: center; }}
.header-nav a {{ color: var(--color-muted); }}
.header-nav a.active, .header-nav a:hover {{ color: var(--color-primary); }}
.menu-button {{ display: none; background: none; border: none; font-size: 1.5rem; cursor: pointer; color: inherit; }}

.footer {{ border-top: 1px solid var(--color-border); padding: 2.5rem 0; color: var(--color-muted); }}

.btn {{
  display: inline-flex;
  align-items: center;
  justify-content: center;
  gap: 0.5rem;
  border-radius: var(--radius);
  border: 1px solid transparent;
  font-weight: 600;
  cursor: pointer;
  transition: opacity 0.15s ease, box-shadow 0.15s ease;
}}
.btn:disabled {{ opacity: 0.6; cursor: not-allowed; }}
.btn-primary {{ background: var(--color-primary); color: #fff; }}
.btn-secondary {{ background: var(--color-secondary); color: #fff; }}
.btn-outline {{ background: transparent; border-color: var(--color-border); color: var(--color-foreground); }}
.btn-sm {{ padding: 0.375rem 0.75rem; font-size: 0.875rem; }}
.btn-md {{ padding: 0.625rem 1.25rem; }}
.btn-lg {{ padding: 0.875rem 1.75rem; font-size: 1.125rem; }}
.btn-full {{ width: 100%; }}

.card {{
  background: var(--color-background);
  border: 1px solid var(--color-border);
  border-radius: var(--radius);
  box-shadow: var(--shadow-sm);
  padding: 1.5rem;
}}
.card h3 {{ margin-bottom: 0.5rem; }}

.form {{ display: grid; gap: 1rem; max-width: 28rem; margin: 0 auto; }}
.form label {{ display: block; font-size: 0.875rem; font-weight: 500; margin-bottom: 0.375rem; }}
.form input, .form textarea {{
  width: 100%;
  padding: 0.625rem 0.875rem;
  border: 1px solid var(--color-border);
  border-radius: var(--radius);
  font: inherit;
  background: transparent;
  color: inherit;
}}
.form-error {{ padding: 0.75rem; border-radius: var(--radius); background: rgba(239, 68, 68, 0.1); color: var(--color-error); }}
.form-success {{ padding: 0.75rem; border-radius: var(--radius); background: rgba(34, 197, 94, 0.1); color: var(--color-success); }}

.auth-page {{ min-height: 70vh; display: flex; align-items: center; justify-content: center; padding: 2rem 1rem; }}
.auth-card {{ width: 100%; max-width: 28rem; }}

@media (max-width: 768px) {{
  .menu-button {{ display: block; }}
  .header-nav {{ display: none; }}
  .header-nav.open {{
    display: flex;
    position: absolute;
    top: 4rem;
    left: 0;
    right: 0;
    flex-direction: column;
    padding: 1rem;
    background: var(--color-background);
    border-bottom: 1px solid var(--color-border);
  }}
}}
"""


# =============================================================================
# PAGES
# =============================================================================

def _page_tsx(schema: Schema, page: Optional[Dict[str, Any]], name: str) -> str:
    if page is None:
        body = _hero_block(meta_name(schema), meta_description(schema), "Get Started", heading="h1")
        return _page_module(name, body)

    kind = page_kind(page)
    sections = []
    if name != "Index":
        sections.append(_page_header(page))

    if kind == "contact":
        sections.append(CONTACT_SECTION)
        return _page_module(name, "\n\n".join(sections), contact=True)

    if kind is not None:
        title, cards = CARD_SECTIONS[kind]
        sections.append(_card_grid(title, cards))
        sections.append(_cta_block("Want to learn more?", "Get in touch with us today.", "Contact Us"))
    elif page_components(schema, page):
        sections.extend(_component_block(component) for component in page_components(schema, page))
    elif name == "Index":
        sections.append(_hero_block(meta_name(schema), meta_description(schema), "Get Started", heading="h1"))
    else:
        sections.append(_card_grid(None, [
            {"title": "Overview", "description": f"Everything about {page.get('title') or page.get('name') or 'this page'} in one place."},
            {"title": "How it works", "description": "Three simple steps from sign-up to results."},
            {"title": "Next steps", "description": "Reach out and we will help you get started."},
        ]))
    return _page_module(name, "\n\n".join(sections))


def _page_module(name: str, body: str, contact: bool = False) -> str:
    imports = ["import Button from '../components/ui/Button'", "import Card from '../components/ui/Card'"]
    if contact:
        imports.insert(0, "import { useState } from 'react'")
    hooks = CONTACT_HOOKS if contact else ""
    return f"""{chr(10).join(imports)}

export default function {name}() {{{hooks}
  return (
    <>
{body}
    </>
  )
}}
"""


def _page_header(page: Dict[str, Any]) -> str:
    title = page.get("title") or page.get("name") or ""
    description = page.get("description")
    lines = [
        '      <section className="page-header">',
        '        <div className="container">',
        f"          <h1>{{{js_string(title)}}}</h1>",
    ]
    if description:
        lines.append(f'          <p className="muted">{{{js_string(description)}}}</p>')
    lines.extend(["        </div>", "      </section>"])
    return "\n".join(lines)


def _hero_block(title: str, subtitle: str, cta: str, heading: str = "h2") -> str:
    return f"""      <section className="hero">
        <div className="container">
          <{heading}>{{{js_string(title)}}}</{heading}>
          <p className="muted">{{{js_string(subtitle)}}}</p>
          <Button size="lg">{{{js_string(cta)}}}</Button>
        </div>
      </section>"""


def _cta_block(title: str, subtitle: str, cta: str) -> str:
    return f"""      <section className="section center">
        <div className="container">
          <h2 className="section-title">{{{js_string(title)}}}</h2>
          <p className="muted">{{{js_string(subtitle)}}}</p>
          <Button size="lg">{{{js_string(cta)}}}</Button>
        </div>
      </section>"""


def _card_grid(title: Optional[str], cards: List[Dict[str, str]]) -> str:
    heading = f'\n          <h2 className="section-title">{{{js_string(title)}}}</h2>' if title else ""
    items = json.dumps(cards, indent=2).replace("\n", "\n            ")
    return f"""      <section className="section section-muted">
        <div className="container">{heading}
          <div className="grid">
            {{{items}.map((item) => (
              <Card key={{item.title}}>
                <h3>{{item.title}}</h3>
                <p className="muted">{{item.description}}</p>
              </Card>
            ))}}
          </div>
        </div>
      </section>"""


def _component_block(component: Dict[str, Any]) -> str:
    component_type = str(component.get("type") or "")
    label = str(component.get("name") or component_type or "Section")
    if component_type == "hero":
        return _hero_block(
            prop_default(component, "title", "Welcome"),
            prop_default(component, "subtitle", "Discover what we offer."),
            prop_default(component, "ctaText", "Learn More"),
        )
    if component_type == "cta":
        return _cta_block(
            prop_default(component, "title", "Ready to get started?"),
            prop_default(component, "description", "Join thousands of satisfied customers."),
            prop_default(component, "ctaText", "Get Started"),
        )
    if component_type in CARD_SECTIONS:
        title, cards = CARD_SECTIONS[component_type]
        return _card_grid(prop_default(component, "title", title), cards)
    if component_type in ("features", "card"):
        title, cards = CARD_SECTIONS["features"]
        return _card_grid(prop_default(component, "title", title), cards)
    return f"""      <section className="section" id={js_string(component.get("id") or "")}>
        <div className="container">
          <Card>
            <h2>{{{js_string(prop_default(component, "title", label))}}}</h2>
            <p className="muted">{{{js_string(prop_default(component, "description", "Component: " + label))}}}</p>
          </Card>
        </div>
      </section>"""


CONTACT_HOOKS = """
  const [form, setForm] = useState({ name: '', email: '', message: '' })
  const [status, setStatus] = useState<'idle' | 'sending' | 'sent' | 'error'>('idle')

  const handleSubmit = async (event: React.FormEvent) => {
    event.preventDefault()
    if (!form.email.includes('@')) {
      setStatus('error')
      return
    }
    setStatus('sending')
    await new Promise((resolve) => setTimeout(resolve, 600))
    setStatus('sent')
    setForm({ name: '', email: '', message: '' })
  }
"""

CONTACT_SECTION = """      <section className="section">
        <div className="container">
          <Card>
            <form className="form" onSubmit={handleSubmit}>
              {status === 'error' && <div className="form-error">Please enter a valid email address.</div>}
              {status === 'sent' && <div className="form-success">Thanks! We will reply within one business day.</div>}
              <div>
                <label htmlFor="name">Name</label>
                <input id="name" value={form.name} onChange={(e) => setForm({ ...form, name: e.target.value })} required />
              </div>
              <div>
                <label htmlFor="email">Email</label>
                <input id="email" type="email" value={form.email} onChange={(e) => setForm({ ...form, email: e.target.value })} required />
              </div>
              <div>
                <label htmlFor="message">Message</label>
                <textarea id="message" rows={5} value={form.message} onChange={(e) => setForm({ ...form, message: e.target.value })} />
              </div>
              <Button type="submit" full disabled={status === 'sending'}>
                {status === 'sending' ? 'Sending...' : 'Send Message'}
              </Button>
            </form>
          </Card>
        </div>
      </section>"""


def _login_tsx(auth: Dict[str, Any]) -> str:
    redirect = js_string(auth.get("redirectAfterLogin") or "/dashboard")
    return f"""import {{ useState }} from 'react'
import {{ Link, useNavigate }} from 'react-router-dom'
import Button from '../components/ui/Button'
import Card from '../components/ui/Card'
import {{ supabase }} from '../lib/supabase'

export default function Login() {{
  const navigate = useNavigate()
  const [email, setEmail] = useState('')
  const [password, setPassword] = useState('')
  const [loading, setLoading] = useState(false)
  const [error, setError] = useState<string | null>(null)

  const handleSubmit = async (event: React.FormEvent) => {{
    event.preventDefault()
    setLoading(true)
    setError(null)

    const {{ error }} = await supabase.auth.signInWithPassword({{ email, password }})
    setLoading(false)

    if (error) {{
      setError(error.message)
      return
    }}
    navigate({redirect})
  }}

  return (
    <div className="auth-page">
      <Card className="auth-card">
        <h1 className="center">Sign In</h1>
        <form className="form" onSubmit={{handleSubmit}}>
          {{error && <div className="form-error">{{error}}</div>}}
          <div>
            <label htmlFor="email">Email</label>
            <input id="email" type="email" value={{email}} onChange={{(e) => setEmail(e.target.value)}} required />
          </div>
          <div>
            <label htmlFor="password">Password</label>
            <input id="password" type="password" value={{password}} onChange={{(e) => setPassword(e.target.value)}} required />
          </div>
          <Button type="submit" full disabled={{loading}}>
            {{loading ? 'Signing in...' : 'Sign In'}}
          </Button>
        </form>
        <p className="center muted">
          Don't have an account? <Link to="/signup">Sign up</Link>
        </p>
      </Card>
    </div>
  )
}}
"""


def _signup_tsx(auth: Dict[str, Any]) -> str:
    min_length = auth.get("passwordMinLength") or 8
    verify = bool(auth.get("requireEmailVerification"))
    redirect = js_string(auth.get("redirectAfterLogin") or "/dashboard")
    on_success = (
        "setMessage('Check your email to confirm your account.')" if verify else f"navigate({redirect})"
    )
    return f"""import {{ useState }} from 'react'
import {{ Link, useNavigate }} from 'react-router-dom'
import Button from '../components/ui/Button'
import Card from '../components/ui/Card'
import {{ supabase }} from '../lib/supabase'

const MIN_PASSWORD_LENGTH = {int(min_length)}

export default function Signup() {{
  const navigate = useNavigate()
  const [email, setEmail] = useState('')
  const [password, setPassword] = useState('')
  const [loading, setLoading] = useState(false)
  const [error, setError] = useState<string | null>(null)
  const [message, setMessage] = useState<string | null>(null)

  const handleSubmit = async (event: React.FormEvent) => {{
    event.preventDefault()
    if (password.length < MIN_PASSWORD_LENGTH) {{
      setError(`Password must be at least ${{MIN_PASSWORD_LENGTH}} characters`)
      return
    }}
    setLoading(true)
    setError(null)

    const {{ error }} = await supabase.auth.signUp({{ email, password }})
    setLoading(false)

    if (error) {{
      setError(error.message)
      return
    }}
    {on_success}
  }}

  return (
    <div className="auth-page">
      <Card className="auth-card">
        <h1 className="center">Create Account</h1>
        <form className="form" onSubmit={{handleSubmit}}>
          {{error && <div className="form-error">{{error}}</div>}}
          {{message && <div className="form-success">{{message}}</div>}}
          <div>
            <label htmlFor="email">Email</label>
            <input id="email" type="email" value={{email}} onChange={{(e) => setEmail(e.target.value)}} required />
          </div>
          <div>
            <label htmlFor="password">Password</label>
            <input id="password" type="password" value={{password}} onChange={{(e) => setPassword(e.target.value)}} required />
          </div>
          <Button type="submit" full disabled={{loading}}>
            {{loading ? 'Creating account...' : 'Sign Up'}}
          </Button>
        </form>
        <p className="center muted">
          Already have an account? <Link to="/login">Sign in</Link>
        </p>
      </Card>
    </div>
  )
}}
"""


# =============================================================================
# SHARED COMPONENTS
# =============================================================================

def _header_tsx(schema: Schema, with_auth: bool) -> str:
    items = navigation_items(schema) or [{"label": "Home", "path": "/"}]
    nav_json = json.dumps(items, indent=2)
    auth_links = """
          <Link to="/login">Sign In</Link>""" if with_auth else ""
    return f"""import {{ useState }} from 'react'
import {{ Link, NavLink }} from 'react-router-dom'

const NAV_ITEMS = {nav_json}

export default function Header() {{
  const [open, setOpen] = useState(false)

  return (
    <header className="header">
      <div className="container header-inner">
        <Link to="/" className="header-logo">{{{js_string(meta_name(schema))}}}</Link>
        <button className="menu-button" aria-label="Toggle menu" aria-expanded={{open}} onClick={{() => setOpen(!open)}}>
          &#9776;
        </button>
        <nav className={{open ? 'header-nav open' : 'header-nav'}}>
          {{NAV_ITEMS.map((item) => (
            <NavLink key={{item.path + item.label}} to={{item.path}} onClick={{() => setOpen(false)}}>
              {{item.label}}
            </NavLink>
          ))}}{auth_links}
        </nav>
      </div>
    </header>
  )
}}
"""


def _footer_tsx(schema: Schema, footer: Optional[Dict[str, Any]]) -> str:
    brand = prop_default(footer, "brand", meta_name(schema)) if footer else meta_name(schema)
    tagline = prop_default(footer, "tagline", meta_description(schema)) if footer else meta_description(schema)
    return f"""export default function Footer() {{
  return (
    <footer className="footer">
      <div className="container">
        <strong>{{{js_string(brand)}}}</strong>
        <p>{{{js_string(tagline)}}}</p>
        <p>&copy; {{new Date().getFullYear()}} {{{js_string(brand)}}}. All rights reserved.</p>
      </div>
    </footer>
  )
}}
"""


BUTTON_TSX = """import type { ButtonHTMLAttributes } from 'react'

type ButtonProps = ButtonHTMLAttributes<HTMLButtonElement> & {
  variant?: 'primary' | 'secondary' | 'outline'
  size?: 'sm' | 'md' | 'lg'
  full?: boolean
}

export default function Button({ variant = 'primary', size = 'md', full = false, className = '', ...props }: ButtonProps) {
  const classes = ['btn', `btn-${variant}`, `btn-${size}`, full ? 'btn-full' : '', className].filter(Boolean).join(' ')
  return <button className={classes} {...props} />
}
"""

CARD_TSX = """import type { HTMLAttributes } from 'react'

export default function Card({ className = '', ...props }: HTMLAttributes<HTMLDivElement>) {
  return <div className={['card', className].filter(Boolean).join(' ')} {...props} />
}
"""

NOT_FOUND_TSX = """import { Link } from 'react-router-dom'

export default function NotFound() {
  return (
    <section className="section center">
      <div className="container">
        <h1>404</h1>
        <p className="muted">The page you are looking for does not exist.</p>
        <Link to="/">Back to home</Link>
      </div>
    </section>
  )
}
"""

SUPABASE_TS = """import { createClient } from '@supabase/supabase-js'

const supabaseUrl = import.meta.env.VITE_SUPABASE_URL as string
const supabaseAnonKey = import.meta.env.VITE_SUPABASE_ANON_KEY as string

if (!supabaseUrl || !supabaseAnonKey) {
  console.warn('Supabase environment variables are missing; auth and data calls will fail.')
}

export const supabase = createClient(supabaseUrl ?? '', supabaseAnonKey ?? '')
"""

ENV_EXAMPLE = """VITE_SUPABASE_URL=https://your-project.supabase.co
VITE_SUPABASE_ANON_KEY=your-anon-key
"""

VITE_CONFIG = """import { defineConfig } from 'vite'
import react from '@vitejs/plugin-react'

export default defineConfig({
  plugins: [react()],
  server: { port: 5173 },
})
"""

TSCONFIG = to_json({
    "compilerOptions": {
        "target": "ES2020",
        "lib": ["ES2020", "DOM", "DOM.Iterable"],
        "module": "ESNext",
        "moduleResolution": "bundler",
        "jsx": "react-jsx",
        "strict": True,
        "skipLibCheck": True,
        "noEmit": True,
        "isolatedModules": True,
        "resolveJsonModule": True,
        "types": ["vite/client"],
    },
    "include": ["src"],
})
