#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
HTML pages. Every page is a pure function of the store contents.

Templates are rendered with Flask's string loader, which autoescapes everything
interpolated (& < > " ' included), so player/realm/item text can't inject markup.
"""

import json
from typing import Any, List, Optional

from flask import render_template_string
from markupsafe import Markup

from death_record import DeathRecord, PlayerProfile

SITE_TITLE = "DeathLogger"

LAYOUT = r"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <meta name="theme-color" content="#0b0f19" />
  <title>{{ title }} · {{ site_title }}</title>
  <link rel="stylesheet" href="{{ url_for('public_asset', relpath='style.css') }}" />
</head>
<body>
  <header class="site-header">
    <div class="container header-inner">
      <a class="brand" href="{{ url_for('index') }}">
        <span class="brand-mark" aria-hidden="true"></span>
        <span>{{ site_title }}</span>
      </a>
      <nav class="nav">
        <a href="{{ url_for('index') }}">Home</a>
        <a href="{{ url_for('api_deaths') }}">API</a>
      </nav>
    </div>
  </header>

  <main id="main" class="section">
    <div class="container">
      {{ body }}
    </div>
  </main>

  <footer class="site-footer">
    <div class="container footer-inner">
      <span class="muted">{{ site_title }}</span>
      <span class="muted">Flask</span>
    </div>
  </footer>
</body>
</html>
"""

# Shared by home and profile listings
CARD = r"""
{% macro death_card(d) -%}
  <article class="card death-card">
    <h2 class="death-title">
      <a href="{{ url_for('death_detail', death_id=d.id) }}">{{ d.player }} @ {{ d.realm }}</a>
    </h2>
    <dl class="kv">
      <dt>When</dt><dd>{{ d.when }}</dd>
      {% if d.level %}<dt>Level</dt><dd>{{ d.level }}{% if d.char_class %} {{ d.char_class }}{% endif %}</dd>{% endif %}
      <dt>Killer</dt><dd>{{ d.killer_label }}</dd>
      {% if d.location %}<dt>Where</dt><dd>{{ d.location.label() }}</dd>{% endif %}
    </dl>
    {% if d.screenshot %}
      <div class="thumb"><img src="{{ d.screenshot }}" alt="Screenshot of {{ d.player }}'s death" loading="lazy" /></div>
    {% endif %}
  </article>
{%- endmacro %}
"""

HOME_TEMPLATE = CARD + r"""
<p class="kicker">Recent deaths</p>
<h1>Deaths</h1>
{% if deaths %}
  <p class="muted">Showing <strong>{{ deaths|length }}</strong> of {{ total }}.</p>
  <div class="grid">
    {% for d in deaths %}{{ death_card(d) }}{% endfor %}
  </div>
{% else %}
  <p class="muted">No deaths yet</p>
{% endif %}
"""

DETAIL_TEMPLATE = r"""
<p class="kicker">Death</p>
<h1>{{ d.player }} @ {{ d.realm }}</h1>
<p class="lead"><a href="{{ url_for('player_profile', slug=d.slug) }}">All deaths of {{ d.player }}</a></p>

<div class="card">
  <dl class="kv">
    <dt>When</dt><dd>{{ d.when }} UTC</dd>
    {% if d.level %}<dt>Level</dt><dd>{{ d.level }}</dd>{% endif %}
    {% if d.char_class %}<dt>Class</dt><dd>{{ d.char_class }}</dd>{% endif %}
    <dt>Killer</dt><dd>{{ d.killer_label }}</dd>
    <dt>Where</dt><dd>{{ d.location.label() if d.location else "Unknown" }}</dd>
    {% if d.money %}<dt>Money</dt><dd>{{ d.money }}</dd>{% endif %}
  </dl>
</div>

{% if d.screenshot %}
  <div class="card shot"><img src="{{ d.screenshot }}" alt="Screenshot of {{ d.player }}'s death" /></div>
{% endif %}

{% if d.equipped %}
  <h2>Equipped</h2>
  <ol class="items">
    {% for item in d.equipped %}<li>{{ item }}</li>{% endfor %}
  </ol>
{% endif %}

{% if d.bags %}
  <h2>Bags</h2>
  {% for bag in d.bags %}
    <div class="card bag">
      <div class="bag-title">Bag {{ bag.bag_id if bag.bag_id is not none else "?" }}</div>
      {% if bag.slots %}
        <ul class="items">
          {% for slot in bag.slots %}<li>{{ slot.display() }}</li>{% endfor %}
        </ul>
      {% else %}
        <p class="muted">Empty</p>
      {% endif %}
    </div>
  {% endfor %}
{% endif %}

<h2>Raw</h2>
<pre class="raw">{{ raw_json }}</pre>
"""

PROFILE_TEMPLATE = CARD + r"""
<p class="kicker">Character</p>
<h1>{{ p.player }} @ {{ p.realm }}</h1>

<div class="card">
  <dl class="kv">
    <dt>Deaths</dt><dd>{{ p.death_count }}</dd>
    {% if p.total_money %}<dt>Total money lost</dt><dd>{{ p.total_money }}</dd>{% endif %}
    {% if p.highest_level %}<dt>Highest level</dt><dd>{{ p.highest_level }}</dd>{% endif %}
    {% if p.top_killer %}<dt>Most deadly</dt><dd>{{ p.top_killer }}</dd>{% endif %}
  </dl>
</div>

<div class="grid">
  {% for d in p.deaths %}{{ death_card(d) }}{% endfor %}
</div>
"""

NOT_FOUND_TEMPLATE = r"""
<h1>Not found</h1>
<p class="muted">{{ message }}</p>
<p><a href="{{ url_for('index') }}">Back to all deaths</a></p>
"""


def _page(title: str, template: str, **ctx: Any) -> str:
    body = Markup(render_template_string(template, **ctx))
    return render_template_string(LAYOUT, title=title, site_title=SITE_TITLE, body=body)


def render_home(deaths: List[DeathRecord], total: int) -> str:
    return _page("Deaths", HOME_TEMPLATE, deaths=deaths, total=total)


def render_detail(d: DeathRecord) -> str:
    raw_json = json.dumps(d.raw, ensure_ascii=False, indent=2)
    return _page("Death Detail", DETAIL_TEMPLATE, d=d, raw_json=raw_json)


def render_profile(p: PlayerProfile) -> str:
    return _page(f"{p.player} @ {p.realm}", PROFILE_TEMPLATE, p=p)


def render_not_found(message: Optional[str] = None) -> str:
    return _page("Not found", NOT_FOUND_TEMPLATE, message=message or "Nothing here.")
