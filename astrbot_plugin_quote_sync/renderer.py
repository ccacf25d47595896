import html
from typing import List, Optional, Tuple, Dict, Any
from .model import Quote, ALL_CATEGORIES

NO_QUOTES_MESSAGE = "暂时没有语录哦。"
ALL_CATEGORIES_LABEL = "全部分类"


def format_quote(q: Quote) -> str:
    return f'"{q.text}" - ({q.category})'


class QuoteRenderer:
    """视图层：负责生成展示文本、HTML 和渲染配置"""

    @staticmethod
    def render_text(q: Optional[Quote]) -> str:
        if q is None:
            return NO_QUOTES_MESSAGE
        return format_quote(q)

    @staticmethod
    def render_quote_list(quotes: List[Quote]) -> str:
        if not quotes:
            return NO_QUOTES_MESSAGE
        return "\n".join(format_quote(q) for q in quotes)

    @staticmethod
    def render_category_options(categories: List[str], selected: str) -> str:
        """分类选项列表，当前筛选项带标记"""
        lines = []
        for cat in categories:
            label = ALL_CATEGORIES_LABEL if cat == ALL_CATEGORIES else cat
            mark = "▶" if cat == selected else "・"
            lines.append(f"{mark} {label}")
        return "\n".join(lines)

    @staticmethod
    def render_single_card(q: Quote, index: int = 0, total: int = 0) -> Tuple[str, Dict[str, Any]]:
        """渲染单条语录卡片"""
        width = 1500
        min_height = 800

        safe_text = html.escape(q.text)
        safe_category = html.escape(q.category)
        # 长文本缩小字号
        font_size = 42 if len(q.text) > 60 or q.text.count('\n') > 4 else 64
        count_text = f"#{index} / {total}" if total > 0 else "AstrBot"

        html_content = f"""
        <html>
        <head>
            <style>
                @import url('https://fonts.googleapis.com/css2?family=Noto+Sans+SC:wght@300;400;700&display=swap');
                * {{ box-sizing: border-box; }}
                body {{
                    margin: 0; padding: 80px;
                    background: #121212;
                    font-family: 'Noto Sans SC', sans-serif;
                    width: {width}px; min-height: {min_height}px; height: auto;
                    display: flex; flex-direction: column; align-items: center; justify-content: center;
                    -webkit-font-smoothing: antialiased;
                }}
                .card {{
                    width: 100%; background: #1E1E1E; border-radius: 24px;
                    box-shadow: 0 10px 30px rgba(0,0,0,0.3); border: 1px solid #2A2A2A;
                    overflow: hidden; position: relative;
                }}
                .card-top-bar {{ height: 12px; width: 100%; background: linear-gradient(90deg, #5E81AC, #88C0D0); }}
                .header {{ padding: 40px 60px 20px 60px; display: flex; align-items: center; justify-content: space-between; border-bottom: 1px solid #2A2A2A; }}
                .category {{ font-size: 38px; font-weight: 600; color: #7CA0C8; }}
                .content-area {{ padding: 60px 80px 80px 80px; min-height: 400px; display: flex; flex-direction: column; justify-content: center; }}
                .quote-text {{ font-size: {font_size}px; line-height: 1.6; color: #E0E0E0; word-wrap: break-word; white-space: pre-wrap; }}
                .footer-deco {{ position: absolute; bottom: 30px; right: 40px; font-family: "Times New Roman", serif; font-size: 140px; color: #252525; opacity: 0.5; line-height: 1; }}
                .count-tag {{
                    display: inline-block; background: #222; color: #888;
                    padding: 4px 14px; border-radius: 8px; border: 1px solid #333;
                    font-family: 'Consolas', 'Monaco', monospace; font-size: 26px; font-weight: bold;
                }}
            </style>
        </head>
        <body>
            <div class="card">
                <div class="card-top-bar"></div>
                <div class="header">
                    <span class="category">{safe_category}</span>
                    <span class="count-tag">{count_text}</span>
                </div>
                <div class="content-area"><div class="quote-text">{safe_text}</div></div>
                <div class="footer-deco">”</div>
            </div>
        </body>
        </html>
        """
        options = {"full_page": True, "viewport": {"width": width, "height": min_height}}
        return html_content, options

    @staticmethod
    def render_list_card(quotes: List[Quote], title: str) -> Tuple[str, Dict[str, Any]]:
        """渲染语录列表长图"""
        view_width = 1000
        safe_title = html.escape(title)

        quotes_list_html = ""
        for i, q in enumerate(quotes):
            item_font_size = 46 if len(q.text) < 50 else 38
            quotes_list_html += f"""
            <div class="card">
                <div class="card-header"><span class="index-tag">#{i+1}</span><span class="card-category">{html.escape(q.category)}</span></div>
                <div class="card-content" style="font-size: {item_font_size}px;">{html.escape(q.text)}</div>
            </div>
            """

        html_content = f"""
        <html>
        <head>
            <style>
                @import url('https://fonts.googleapis.com/css2?family=Noto+Sans+SC:wght@400;500;700&display=swap');
                * {{ box-sizing: border-box; }}
                body {{
                    margin: 0; padding: 0 0 60px 0; background-color: #121212;
                    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Noto Sans SC', sans-serif;
                    width: 100%; color: #fff;
                }}
                .header {{ width: 100%; padding: 80px 50px 50px 50px; background-color: #1E1E1E; border-bottom: 1px solid #2C2C2C; }}
                .title {{ font-size: 52px; font-weight: 600; margin-bottom: 15px; word-break: break-word; }}
                .subtitle {{ font-size: 32px; color: #888; }}
                .list-container {{ width: 100%; padding: 50px 50px 0 50px; display: flex; flex-direction: column; gap: 36px; }}
                .card {{
                    background-color: #1E1E1E; border-radius: 24px; padding: 40px;
                    box-shadow: 0 6px 16px rgba(0,0,0,0.25); border: 1px solid #2A2A2A;
                }}
                .card-header {{ display: flex; justify-content: space-between; align-items: center; margin-bottom: 25px; }}
                .index-tag {{
                    font-size: 28px; font-weight: bold; color: #5E81AC; background: rgba(94, 129, 172, 0.15); padding: 6px 16px; border-radius: 8px;
                }}
                .card-category {{ color: #7CA0C8; font-size: 30px; }}
                .card-content {{ line-height: 1.5; color: #E0E0E0; word-wrap: break-word; white-space: pre-wrap; }}
            </style>
        </head>
        <body>
            <div class="header">
                <div class="title">{safe_title}</div>
                <div class="subtitle">共 {len(quotes)} 条语录</div>
            </div>
            <div class="list-container">{quotes_list_html}</div>
        </body>
        </html>
        """
        options = {"full_page": True, "viewport": {"width": view_width, "height": 1000}}
        return html_content, options
