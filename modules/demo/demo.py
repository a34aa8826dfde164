"""
Demo Anime - Example extraction module.

Parses the HTML pages the host prefetches. ``ExtractionProvider`` and the
capability handles (``console``, ``fetch``, ``atob``...) are provided by
the sandbox.
"""

from mediascout.plugins.common import HTMLParser, TextCleaner


BASE_URL = "https://demo-anime.example/"


class DemoAnimeProvider(ExtractionProvider):

    def search_results(self, html):
        page = HTMLParser(html, BASE_URL)
        results = page.records(".film-list .item", {
            "title": ".name",
            "image": "img@src",
            "href": "a.poster@href",
        })
        self.console.log(f"Found {len(results)} search results")
        return results

    def extract_details(self, html):
        page = HTMLParser(html, BASE_URL)
        return [{
            "description": TextCleaner.clean_description(page.find_text(".synopsis")),
            "aliases": page.find_text(".alias"),
            "airdate": page.find_text(".aired"),
        }]

    def extract_episodes(self, html):
        page = HTMLParser(html, BASE_URL)
        episodes = []
        for record in page.records(".episodes a", {"label": "", "href": "@href", "title": "@title"}):
            number = TextCleaner.extract_episode_number(record["label"])
            if number is None:
                self.console.warn(f"Episode without a number: {record['label']!r}")
                continue
            episodes.append({"number": number, "href": record["href"], "title": record["title"]})
        return episodes

    def extract_stream_url(self, html):
        page = HTMLParser(html, BASE_URL)
        player = page.extract_json_data("script#player-config")
        if "file" in player:
            return {
                "streams": [{"title": "Default", "streamUrl": player["file"], "headers": {"Referer": BASE_URL}}],
                "subtitles": player.get("subtitle"),
            }
        encoded = page.find_attr("#player", "data-stream")
        if encoded:
            return atob(encoded)
        return None
