"""Short status notices shown to the user.

Every helper returns plain Turkish text so the upload hint, alerts and API
error details share the same wording.
"""

from __future__ import annotations

EMPTY_OFFER = "Liste boş. Önce ürün ekleyin."
EMPTY_EXPORT = "Liste boş."
EMPTY_REQUEST_TEXT = "Dönüştürülecek metin bulunamadı."
EMPTY_CATALOG = "Seçili fiyat listesinde ürün yok. Önce bir liste yükleyin."
IMAGE_FAILED = "Görsel okunurken hata oluştu."
DECODE_IN_PROGRESS = "Önceki dosya hâlâ işleniyor, lütfen bekleyin."
CONVERTED_FROM_TEXT = "Yazıdan dönüştürüldü."
LIST_NAME_AND_FILE_REQUIRED = "Liste adı ve dosyası gerekli."
LIST_NAME_REQUIRED = "Liste adı gerekli."
SELECT_ITEMS_TO_DELETE = "Silmek için ürün seçin."


def file_loaded(filename: str) -> str:
    return f"{filename} yüklendi."


def file_converted(filename: str) -> str:
    return f"{filename} başarıyla dönüştürüldü."


def file_unreadable(filename: str) -> str:
    return f"{filename} okunamadı."


def list_saved(name: str, count: int) -> str:
    return f"{name} listesi eklendi ({count} ürün)."


def offer_created(grand_total: str) -> str:
    return f"Teklif oluşturuldu. Genel toplam: {grand_total}"
