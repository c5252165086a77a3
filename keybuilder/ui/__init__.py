from .dialog import DialogRenderer, DialogResult, format_advisories


__all__ = ["DialogRenderer", "DialogResult", "format_advisories"]
