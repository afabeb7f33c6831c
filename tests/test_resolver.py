import logging

from targetfinder.config import precision_threshold
from targetfinder.documents import FrameLoader
from targetfinder.dom import parse_html
from targetfinder.models import ContextNode, Target
from targetfinder.resolver import (
    AncestorMatch,
    compare_ancestors,
    find_element,
    most_recurring_element,
    precision_rate,
    query_selectors,
    resolve,
    resolve_element,
)
from targetfinder.target_builder import capture_target

SETTINGS_PAGE = """
<html><body>
  <div id="app">
    <nav class="menu">
      <a href="/home" class="link">Home</a>
      <a href="/settings" class="link active">Settings</a>
    </nav>
    <form id="profile">
      <label for="name">Name</label>
      <input id="name" name="name">
      <select name="lang"><option>en</option><option>de</option></select>
      <button class="btn primary" type="submit">Save</button>
      <button class="btn" type="button">Cancel</button>
    </form>
  </div>
</body></html>
"""


def _chain(*levels):
    node = None
    for depth in reversed(range(len(levels))):
        node = ContextNode(selectors=list(levels[depth]), depth=depth, parent=node)
    return node


def test_captured_elements_resolve_back_to_themselves() -> None:
    soup = parse_html(SETTINGS_PAGE)

    for element in soup.select("a, input, select, option, button, label"):
        target = capture_target(element)
        assert resolve_element(target, soup) is element, element


def test_resolution_is_idempotent() -> None:
    soup = parse_html(SETTINGS_PAGE)
    target = capture_target(soup.select_one("button.primary"))

    first = resolve(target, soup)
    second = resolve(target, soup)

    assert first is not None and second is not None
    assert first.element is second.element
    assert not first.is_in_iframe
    assert first.iframe_context == ""


def test_resolution_survives_a_json_round_trip() -> None:
    soup = parse_html(SETTINGS_PAGE)
    element = soup.select_one("a.active")
    target = Target.from_json(capture_target(element, precision_level="loose").to_json())

    assert resolve_element(target, soup) is element


def test_resolution_against_a_fresh_parse() -> None:
    original = parse_html(SETTINGS_PAGE)
    target = capture_target(original.select_one("button.primary"))
    reloaded = parse_html(SETTINGS_PAGE)

    assert resolve_element(target, reloaded) is reloaded.select_one("button.primary")


def test_body_can_be_used_as_the_search_root() -> None:
    soup = parse_html(SETTINGS_PAGE)
    element = soup.select_one("#name")
    target = capture_target(element)

    assert resolve_element(target, soup.body) is element


def test_ancestors_disambiguate_identical_leaves() -> None:
    soup = parse_html(
        """
        <html><body><div id="app">
          <section class="card"><button class="primary">Save</button></section>
          <header class="toolbar"><button class="primary">Save</button></header>
        </div></body></html>
        """
    )
    node = _chain(["button.primary"], ["header.toolbar"], ["#app"])

    assert find_element(node, soup) is soup.select_one("header button")


def test_siblings_break_a_tie_between_strict_matches() -> None:
    soup = parse_html(
        """
        <html><body><div id="list">
          <div class="row"><button class="edit">Edit</button></div>
          <div class="marker"></div>
          <div class="row"><button class="edit">Edit</button></div>
        </div></body></html>
        """
    )
    node = _chain(["button.edit"], ["div.row"], ["#list"])
    node.parent.previous_sibling_selectors = ["div.marker"]

    assert find_element(node, soup) is soup.select("button.edit")[1]


def test_degraded_match_depends_on_precision() -> None:
    soup = parse_html(
        '<html><body><div id="app"><div class="panel"><button class="cta">Go</button></div></div></body></html>'
    )
    node = _chain(["button.cta"], ["div.wrapper"], ["div.panel"], ["#app"])
    button = soup.select_one("button.cta")

    match = compare_ancestors(node, button, soup)

    assert match == AncestorMatch(max_depth=3, failed_depth=2, success=False)
    assert round(precision_rate(match), 2) == 3.33
    assert find_element(node, soup, precision_threshold("loose")) is button
    assert find_element(node, soup, precision_threshold("strict")) is None


def test_removed_wrapper_is_tolerated_only_by_loose_targets() -> None:
    original = parse_html(
        '<html><body><div id="app"><div class="panel"><div class="wrapper">'
        '<button class="cta">Go</button></div></div></div></body></html>'
    )
    changed = parse_html(
        '<html><body><div id="app"><div class="panel"><button class="cta">Go</button></div></div></body></html>'
    )
    element = original.select_one("button.cta")

    loose = capture_target(element, precision_level="loose")
    strict = capture_target(element, precision_level="strict")

    assert resolve_element(loose, changed) is changed.select_one("button.cta")
    assert resolve_element(strict, changed) is None


def test_missing_leaf_resolves_to_nothing() -> None:
    soup = parse_html(SETTINGS_PAGE)
    node = _chain(["button.danger"], ["#profile"])

    assert find_element(node, soup) is None
    assert find_element(None, soup) is None


def test_duplicated_matches_collapse_to_the_most_recurring_element() -> None:
    soup = parse_html(SETTINGS_PAGE)
    save, cancel = soup.select("button")

    assert most_recurring_element([cancel, save, save]) is save
    assert most_recurring_element([save, cancel]) is save


def test_malformed_stored_selectors_are_skipped() -> None:
    soup = parse_html(SETTINGS_PAGE)

    assert query_selectors(["div[", "#name"], soup) == [soup.select_one("#name")]


def test_doubled_escapes_in_stored_selectors_are_normalized() -> None:
    soup = parse_html('<html><body><p id="1st">First</p><p>Second</p></body></html>')
    target = Target(mode="custom", custom_selector="#\\\\31 st")

    assert resolve_element(target, soup) is soup.select_one("p")


def test_dynamic_content_requires_matching_text() -> None:
    soup = parse_html(SETTINGS_PAGE)
    element = soup.select_one("button.primary")
    dynamic = capture_target(element, is_dynamic_content=True)
    static = capture_target(element)

    element.string = "Saved!"

    assert resolve_element(dynamic, soup) is None
    assert resolve_element(static, soup) is element


def test_target_without_tree_resolves_to_nothing() -> None:
    soup = parse_html(SETTINGS_PAGE)

    assert resolve(Target(), soup) is None


def test_custom_selector_uses_the_sequence_index() -> None:
    soup = parse_html(SETTINGS_PAGE)
    links = soup.select("a.link")

    assert resolve_element(Target(mode="custom", custom_selector="a.link", sequence_index=1), soup) is links[1]
    assert resolve_element(Target(mode="custom", custom_selector="a.link", sequence_index=7), soup) is links[0]


def test_custom_selector_checks_text_content() -> None:
    soup = parse_html(SETTINGS_PAGE)

    matching = Target(mode="custom", custom_selector="a.link", text_content="  Home ")
    mismatching = Target(mode="custom", custom_selector="a.link", text_content="Logout")

    assert resolve_element(matching, soup) is soup.select_one("a.link")
    assert resolve_element(mismatching, soup) is None


def test_custom_selector_without_matches_or_with_bad_syntax(caplog) -> None:
    soup = parse_html(SETTINGS_PAGE)

    assert resolve(Target(mode="custom", custom_selector="div#nonexistent"), soup) is None
    with caplog.at_level(logging.WARNING, logger="targetfinder.resolver"):
        assert resolve(Target(mode="custom", custom_selector="div["), soup) is None
    assert "Selector error" in caplog.text
    assert resolve(Target(mode="custom"), soup) is None


def test_element_inside_a_frame_is_resolved_with_its_frame_path() -> None:
    markup = """
    <html><body>
      <iframe id="ads" src="https://ads.example/banner"></iframe>
      <iframe name="editor" srcdoc="<html><body><div class='pane'><button id='publish'>Publish</button></div></body></html>"></iframe>
    </body></html>
    """
    loader = FrameLoader(base_url="https://app.example/builder")
    root = loader.load_root(markup)
    publish = loader.content_document(root.select_one('iframe[name="editor"]')).select_one("#publish")

    target = capture_target(publish, root=root, frames=loader, search_across_frames=True)
    result = resolve(target, root, loader)

    assert target.iframe_context == 'iframe[name="editor"]'
    assert target.context_tree.is_in_iframe
    assert result is not None
    assert result.element is publish
    assert result.is_in_iframe
    assert result.iframe_context == 'iframe[name="editor"]'
    assert result.frame_path == ('iframe[name="editor"]',)


def test_frames_are_ignored_unless_requested() -> None:
    markup = (
        "<html><body><iframe srcdoc=\"<html><body><button id='inner'>Go</button></body></html>\"></iframe>"
        "</body></html>"
    )
    loader = FrameLoader()
    root = loader.load_root(markup)
    inner = loader.content_document(root.select_one("iframe")).select_one("#inner")

    target = capture_target(inner, root=root, frames=loader, search_across_frames=True)
    target.search_across_frames = False

    assert resolve(target, root, loader) is None


def test_sole_candidate_skips_the_sibling_tie_break(monkeypatch) -> None:
    soup = parse_html(SETTINGS_PAGE)
    target = capture_target(soup.select_one("#name"))
    calls = []
    monkeypatch.setattr(
        "targetfinder.resolver.compare_siblings",
        lambda *args: calls.append(args) or True,
    )

    assert resolve_element(target, soup) is soup.select_one("#name")
    assert calls == []


def test_stored_text_with_line_breaks_matches_br_separated_text() -> None:
    soup = parse_html('<html><body><div id="app"><button class="cta">Save<br>now</button></div></body></html>')
    element = soup.select_one("button")
    target = capture_target(element, is_dynamic_content=True)
    target.text_content = "Save\nnow"

    assert resolve_element(target, soup) is element
    assert resolve_element(Target(mode="custom", custom_selector="button", text_content="Save\n now"), soup) is element


def test_most_recurring_match_wins_over_document_order() -> None:
    original = parse_html(
        '<html><body><div id="app">'
        '<header class="toolbar"><button class="primary">Save</button></header>'
        "</div></body></html>"
    )
    target = capture_target(original.select_one("button"))
    changed = parse_html(
        '<html><body><div id="app">'
        '<section class="card"><div class="body"><button class="primary">Save</button></div></section>'
        '<header class="toolbar"><button class="primary">Save</button></header>'
        "</div></body></html>"
    )

    assert resolve_element(target, changed) is changed.select_one("header button")


def test_capture_warns_when_element_is_outside_the_root(caplog) -> None:
    page = parse_html(SETTINGS_PAGE)
    other = parse_html('<html><body><button id="stray">Stray</button></body></html>')

    with caplog.at_level(logging.WARNING, logger="targetfinder.builder"):
        target = capture_target(other.select_one("#stray"), root=page, search_across_frames=True)

    assert target.iframe_context == ""
    assert [record.name for record in caplog.records] == ["targetfinder.builder"]
