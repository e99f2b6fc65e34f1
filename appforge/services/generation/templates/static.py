"""
Static website generator: plain HTML pages, one stylesheet, one script.
"""
from typing import Any, Dict, List, Optional, Tuple

from .common import (
    DESIGN_SOURCES,
    FileSet,
    TemplateFile,
    css_variables,
    dark_overrides,
    esc,
    footer_component,
    google_fonts_import,
    is_home,
    meta_description,
    meta_name,
    navigation_items,
    page_components,
    page_sources,
    pages,
    prop_default,
    safe_path,
)

Schema = Dict[str, Any]

CHROME_SOURCES = ("meta", "structure.navigation", "components.footer")


def generate_static(schema: Schema) -> List[TemplateFile]:
    files = FileSet()
    all_pages = pages(schema)
    home = next((p for p in all_pages if is_home(p)), all_pages[0] if all_pages else None)

    home_sources: Tuple[str, ...] = CHROME_SOURCES + _footer_sources(schema)
    if home is not None:
        home_sources = page_sources(schema, home, *home_sources)
        if not is_home(home):
            # First page stands in for a missing home page
            home_sources += ("pages",)
    files.add("index.html", _render_page(schema, home, is_index=True), home_sources)
    files.add("styles.css", _render_styles(schema), DESIGN_SOURCES)
    files.add("script.js", SCRIPT_JS)

    for page in all_pages:
        if page is home:
            continue
        stem = safe_path(str(page.get("path") or ""), default=safe_path(str(page.get("id") or "page")))
        files.add(
            f"{stem}.html",
            _render_page(schema, page, is_index=False),
            page_sources(schema, page, *CHROME_SOURCES, *_footer_sources(schema)),
        )
    return files.files


def _footer_sources(schema: Schema) -> Tuple[str, ...]:
    footer = footer_component(schema)
    return (f"component:{footer.get('id')}",) if footer else ()


# =============================================================================
# HTML
# =============================================================================

def _render_page(schema: Schema, page: Optional[Dict[str, Any]], is_index: bool) -> str:
    name = meta_name(schema)
    description = (page or {}).get("description") or meta_description(schema)
    if is_index or page is None:
        title = esc(name)
    else:
        title = f"{esc(page.get('title') or page.get('name') or name)} | {esc(name)}"

    body: List[str] = []
    if page is not None and not is_index:
        header = ['<section class="page-header">', '      <div class="container">',
                  f"        <h1>{esc(page.get('title') or page.get('name') or '')}</h1>"]
        if page.get("description"):
            header.append(f"        <p>{esc(page['description'])}</p>")
        header.extend(["      </div>", "    </section>"])
        body.append("\n".join(header))
    if page is not None:
        body.extend(render_component(component) for component in page_components(schema, page))
    if not body:
        body.append(_render_placeholder(name, meta_description(schema)))

    main = "\n    ".join(body)
    return f"""<!DOCTYPE html>
<html lang="en" data-theme="light">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="description" content="{esc(description)}">
  <meta property="og:type" content="website">
  <meta property="og:title" content="{esc(name)}">
  <meta property="og:description" content="{esc(description)}">
  <title>{title}</title>
  <link rel="stylesheet" href="styles.css">
</head>
<body>
  <a href="#main-content" class="skip-link">Skip to main content</a>

  {_render_navigation(schema)}

  <main id="main-content">
    {main}
  </main>

  {_render_footer(schema)}

  <script src="script.js" defer></script>
</body>
</html>
"""


def _render_navigation(schema: Schema) -> str:
    items = navigation_items(schema)
    if not items:
        return ""
    links = "\n        ".join(
        f'<li role="none"><a href="{esc(item["path"])}" class="nav-link" role="menuitem">{esc(item["label"])}</a></li>'
        for item in items
    )
    return f"""<header class="header" role="banner">
    <nav class="nav container" aria-label="Main navigation">
      <a href="index.html" class="nav-logo">{esc(meta_name(schema))}</a>
      <div class="nav-actions">
        <button class="theme-toggle" aria-label="Toggle dark mode" title="Toggle dark mode">&#9788;</button>
        <button class="nav-toggle" aria-label="Toggle navigation menu" aria-expanded="false" aria-controls="nav-menu">
          <span></span>
          <span></span>
          <span></span>
        </button>
      </div>
      <ul class="nav-menu" id="nav-menu" role="menubar">
        {links}
      </ul>
    </nav>
  </header>"""


def _render_footer(schema: Schema) -> str:
    footer = footer_component(schema)
    if footer is not None:
        return render_component(footer, site_name=meta_name(schema))
    return f"""<footer class="footer">
    <div class="container">
      <p>&copy; {esc(meta_name(schema))}. All rights reserved.</p>
    </div>
  </footer>"""


def _render_placeholder(name: str, description: str) -> str:
    return f"""<section class="hero">
      <div class="container">
        <h1 class="hero-title">{esc(name)}</h1>
        <p class="hero-subtitle">{esc(description)}</p>
      </div>
    </section>"""


def render_component(component: Dict[str, Any], site_name: str = "Brand") -> str:
    """Markup for one component; unknown types become a labelled section."""
    component_type = str(component.get("type") or "section")
    component_id = esc(component.get("id") or "")

    if component_type == "hero":
        return f"""<section class="hero" id="{component_id}">
      <div class="container">
        <h1 class="hero-title">{esc(prop_default(component, "title", "Welcome"))}</h1>
        <p class="hero-subtitle">{esc(prop_default(component, "subtitle", "Your amazing subtitle here"))}</p>
        <div class="hero-actions">
          <a href="#" class="btn btn-primary">{esc(prop_default(component, "ctaText", "Get Started"))}</a>
          <a href="#" class="btn btn-secondary">Learn More</a>
        </div>
      </div>
    </section>"""

    if component_type == "cta":
        return f"""<section class="cta" id="{component_id}">
      <div class="container">
        <h2>{esc(prop_default(component, "title", "Ready to get started?"))}</h2>
        <p>{esc(prop_default(component, "description", "Join thousands of satisfied customers."))}</p>
        <a href="#" class="btn btn-primary">Get Started Now</a>
      </div>
    </section>"""

    if component_type == "card":
        return f"""<div class="card" id="{component_id}">
      <div class="card-body">
        <h3 class="card-title">{esc(prop_default(component, "title", "Card Title"))}</h3>
        <p class="card-text">{esc(prop_default(component, "description", "Card description"))}</p>
      </div>
    </div>"""

    if component_type == "form":
        prefix = component_id or "form"
        return f"""<form class="form" id="{component_id}">
      <div class="form-group">
        <label for="{prefix}-name">Name</label>
        <input type="text" id="{prefix}-name" name="name" required>
      </div>
      <div class="form-group">
        <label for="{prefix}-email">Email</label>
        <input type="email" id="{prefix}-email" name="email" required>
      </div>
      <div class="form-group">
        <label for="{prefix}-message">Message</label>
        <textarea id="{prefix}-message" name="message" rows="4"></textarea>
      </div>
      <button type="submit" class="btn btn-primary">{esc(prop_default(component, "submitText", "Submit"))}</button>
    </form>"""

    if component_type == "pricing":
        return f"""<section class="pricing" id="{component_id}">
      <div class="container">
        <h2 class="section-title">{esc(prop_default(component, "title", "Pricing"))}</h2>
        <div class="pricing-grid">
          <div class="pricing-card">
            <h3>Basic</h3>
            <div class="price">$9<span>/mo</span></div>
            <ul>
              <li>Up to 3 projects</li>
              <li>Email support</li>
            </ul>
            <a href="#" class="btn btn-secondary">Choose Plan</a>
          </div>
          <div class="pricing-card featured">
            <h3>Pro</h3>
            <div class="price">$29<span>/mo</span></div>
            <ul>
              <li>Unlimited projects</li>
              <li>Priority support</li>
              <li>Team collaboration</li>
            </ul>
            <a href="#" class="btn btn-primary">Choose Plan</a>
          </div>
        </div>
      </div>
    </section>"""

    if component_type == "testimonial":
        return f"""<section class="testimonials" id="{component_id}">
      <div class="container">
        <h2 class="section-title">{esc(prop_default(component, "title", "What Our Customers Say"))}</h2>
        <div class="testimonial-grid">
          <div class="testimonial-card">
            <p class="testimonial-text">"{esc(prop_default(component, "quote", "Amazing product! Highly recommended."))}"</p>
            <div class="testimonial-author">
              <strong>{esc(prop_default(component, "author", "Sarah Chen"))}</strong>
              <span>{esc(prop_default(component, "role", "Head of Product"))}</span>
            </div>
          </div>
        </div>
      </div>
    </section>"""

    if component_type == "faq":
        return f"""<section class="faq" id="{component_id}">
      <div class="container">
        <h2 class="section-title">{esc(prop_default(component, "title", "Frequently Asked Questions"))}</h2>
        <div class="faq-list">
          <details class="faq-item">
            <summary>What is your refund policy?</summary>
            <p>We offer a 30-day money-back guarantee.</p>
          </details>
          <details class="faq-item">
            <summary>How do I get started?</summary>
            <p>Sign up and follow the quick start guide.</p>
          </details>
        </div>
      </div>
    </section>"""

    if component_type == "footer":
        return f"""<footer class="footer" id="{component_id}">
    <div class="container">
      <div class="footer-grid">
        <div class="footer-brand">
          <h3>{esc(prop_default(component, "brand", site_name))}</h3>
          <p>{esc(prop_default(component, "tagline", ""))}</p>
        </div>
      </div>
      <div class="footer-bottom">
        <p>&copy; {esc(prop_default(component, "brand", site_name))}. All rights reserved.</p>
      </div>
    </div>
  </footer>"""

    return f"""<section class="{esc(component_type)}" id="{component_id}">
      <div class="container">
        <p>Component: {esc(component.get("name") or component_type)}</p>
      </div>
    </section>"""


# =============================================================================
# CSS / JS
# =============================================================================

def _render_styles(schema: Schema) -> str:
    return f"""{google_fonts_import(schema)}

{css_variables(schema)}

{dark_overrides('[data-theme="dark"]')}

*, *::before, *::after {{ box-sizing: border-box; margin: 0; padding: 0; }}

html {{ scroll-behavior: smooth; font-size: var(--font-size-base); }}

body {{
  font-family: var(--font-body);
  line-height: var(--line-height);
  color: var(--color-foreground);
  background: var(--color-background);
}}

h1, h2, h3, h4 {{ font-family: var(--font-heading); line-height: 1.2; }}

a {{ color: var(--color-primary); }}

.container {{ width: 100%; max-width: 1200px; margin: 0 auto; padding: 0 1.5rem; }}

.skip-link {{ position: absolute; left: -9999px; }}
.skip-link:focus {{ left: 1rem; top: 1rem; z-index: 100; }}

.header {{
  position: sticky;
  top: 0;
  z-index: 50;
  background: var(--color-background);
  border-bottom: 1px solid var(--color-border);
}}
.nav {{ display: flex; align-items: center; justify-content: space-between; height: 4rem; }}
.nav-logo {{ font-family: var(--font-heading); font-weight: 700; text-decoration: none; color: var(--color-foreground); }}
.nav-menu {{ display: flex; gap: var(--spacing-gap); list-style: none; }}
.nav-link {{ color: var(--color-muted); text-decoration: none; }}
.nav-link:hover {{ color: var(--color-primary); }}
.nav-actions {{ display: flex; align-items: center; gap: 0.5rem; order: 3; }}
.theme-toggle, .nav-toggle {{ background: none; border: none; cursor: pointer; color: inherit; }}
.nav-toggle {{ display: none; flex-direction: column; gap: 4px; }}
.nav-toggle span {{ width: 22px; height: 2px; background: currentColor; }}

.btn {{
  display: inline-block;
  padding: 0.75rem 1.5rem;
  border-radius: var(--radius);
  font-weight: 600;
  text-decoration: none;
  border: 1px solid transparent;
  cursor: pointer;
  transition: transform 0.15s ease, box-shadow 0.15s ease;
}}
.btn:hover {{ transform: translateY(-1px); box-shadow: var(--shadow-md); }}
.btn-primary {{ background: var(--color-primary); color: #fff; }}
.btn-secondary {{ background: transparent; color: var(--color-foreground); border-color: var(--color-border); }}

section {{ padding: var(--spacing-section) 0; }}
.section-title {{ text-align: center; margin-bottom: 2rem; }}

.hero {{ text-align: center; background: linear-gradient(180deg, rgba(var(--color-primary-rgb), 0.08), transparent); }}
.hero-title {{ font-size: clamp(2.25rem, 5vw, 3.5rem); margin-bottom: 1rem; }}
.hero-subtitle {{ color: var(--color-muted); font-size: 1.25rem; margin-bottom: 2rem; }}
.hero-actions {{ display: flex; gap: var(--spacing-gap); justify-content: center; flex-wrap: wrap; }}

.page-header {{ text-align: center; padding-bottom: 0; }}

.cta {{ text-align: center; background: var(--color-primary); color: #fff; }}
.cta .btn-primary {{ background: #fff; color: var(--color-primary); }}

.card, .pricing-card, .testimonial-card {{
  background: var(--color-background);
  border: 1px solid var(--color-border);
  border-radius: var(--radius);
  box-shadow: var(--shadow-sm);
  padding: 1.5rem;
}}

.form {{ max-width: 560px; margin: 0 auto; display: grid; gap: var(--spacing-gap); }}
.form-group {{ display: grid; gap: 0.375rem; }}
.form input, .form textarea {{
  padding: 0.75rem;
  border: 1px solid var(--color-border);
  border-radius: var(--radius);
  font: inherit;
}}

.pricing-grid, .testimonial-grid {{
  display: grid;
  grid-template-columns: repeat(auto-fit, minmax(260px, 1fr));
  gap: var(--spacing-gap);
}}
.pricing-card.featured {{ border-color: var(--color-primary); box-shadow: var(--shadow-lg); }}
.price {{ font-size: 2.5rem; font-weight: 700; margin: 1rem 0; }}
.price span {{ font-size: 1rem; color: var(--color-muted); }}
.pricing-card ul {{ list-style: none; margin-bottom: 1.5rem; }}

.testimonial-text {{ font-style: italic; margin-bottom: 1rem; }}
.testimonial-author span {{ display: block; color: var(--color-muted); }}

.faq-list {{ max-width: 720px; margin: 0 auto; }}
.faq-item {{ border-bottom: 1px solid var(--color-border); padding: 1rem 0; }}
.faq-item summary {{ cursor: pointer; font-weight: 600; }}

.footer {{ padding: 3rem 0; border-top: 1px solid var(--color-border); color: var(--color-muted); }}
.footer-grid {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 2rem; }}
.footer-bottom {{ margin-top: 2rem; }}

.fade-in {{ opacity: 0; transform: translateY(16px); transition: opacity 0.5s ease, transform 0.5s ease; }}
.fade-in.visible {{ opacity: 1; transform: none; }}

@media (max-width: 768px) {{
  .nav-toggle {{ display: flex; }}
  .nav-menu {{
    display: none;
    position: absolute;
    top: 4rem;
    left: 0;
    right: 0;
    flex-direction: column;
    padding: 1rem 1.5rem;
    background: var(--color-background);
    border-bottom: 1px solid var(--color-border);
  }}
  .nav-menu.open {{ display: flex; }}
}}
"""


SCRIPT_JS = """document.addEventListener('DOMContentLoaded', () => {
  const navToggle = document.querySelector('.nav-toggle');
  const navMenu = document.querySelector('.nav-menu');
  if (navToggle && navMenu) {
    navToggle.addEventListener('click', () => {
      const open = navMenu.classList.toggle('open');
      navToggle.setAttribute('aria-expanded', String(open));
    });
  }

  const root = document.documentElement;
  const stored = localStorage.getItem('theme');
  if (stored) {
    root.setAttribute('data-theme', stored);
  }
  const themeToggle = document.querySelector('.theme-toggle');
  if (themeToggle) {
    themeToggle.addEventListener('click', () => {
      const next = root.getAttribute('data-theme') === 'dark' ? 'light' : 'dark';
      root.setAttribute('data-theme', next);
      localStorage.setItem('theme', next);
    });
  }

  document.querySelectorAll('a[href^="#"]').forEach((anchor) => {
    anchor.addEventListener('click', (event) => {
      const id = anchor.getAttribute('href');
      if (!id || id === '#') return;
      const target = document.querySelector(id);
      if (target) {
        event.preventDefault();
        target.scrollIntoView({ behavior: 'smooth' });
      }
    });
  });

  document.querySelectorAll('form.form').forEach((form) => {
    form.addEventListener('submit', (event) => {
      event.preventDefault();
      const button = form.querySelector('button[type="submit"]');
      if (button) {
        button.textContent = 'Thanks! We will be in touch.';
        button.disabled = true;
      }
      form.reset();
    });
  });

  const observer = new IntersectionObserver((entries) => {
    entries.forEach((entry) => {
      if (entry.isIntersecting) {
        entry.target.classList.add('visible');
        observer.unobserve(entry.target);
      }
    });
  }, { threshold: 0.1 });

  document.querySelectorAll('main section').forEach((section) => {
    section.classList.add('fade-in');
    observer.observe(section);
  });
});
"""
