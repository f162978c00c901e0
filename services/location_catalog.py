"""
地點題庫

- en：經典 Spyfall 地點
- tr：土耳其語地點
"""
from typing import List

from core.exceptions import InvalidArgument

LOCATIONS_EN = [
    "Airport", "Bank", "Beach", "Casino", "Cathedral", "Circus",
    "Corporate Party", "Crusader Army", "Day Spa", "Embassy", "Hospital",
    "Hotel", "Military Base", "Movie Studio", "Ocean Liner",
    "Passenger Train", "Pirate Ship", "Polar Station", "Police Station",
    "Restaurant", "School", "Space Station", "Submarine", "Supermarket",
    "Theater", "University", "Zoo", "Amusement Park", "Art Museum",
    "Barbershop", "Bookstore", "Bowling Alley", "Candy Factory",
    "Car Dealership", "Cemetery", "Coal Mine", "Construction Site",
    "Dental Office", "Desert", "Diner", "Disco", "Farm", "Fire Station",
    "Fishing Village", "Garage", "Gas Station", "Haunted House", "Ice Rink",
    "Jail", "Jazz Club", "Library", "Lighthouse", "Mansion", "Nightclub",
    "Office Building", "Park", "Pharmacy", "Playground", "Raceway",
    "Retirement Home", "Salon", "Ski Resort", "Skyscraper", "Stadium",
    "Subway", "Toy Store", "Vineyard", "Warehouse", "Wedding Chapel",
]

_LOCATIONS_TR_RAW = [
    "Havalimanı", "Banka", "Plaj", "Tiyatro", "Kumarhane", "Katedral",
    "Çadır", "Hastane", "Otel", "Askeri Üs", "Film Stüdyosu", "Gemi", "Tren",
    "Korsan Gemisi", "Kutup İstasyonu", "Polis Karakolu", "Restoran", "Okul",
    "Benzin İstasyonu", "Uzay İstasyonu", "Denizaltı", "Süpermarket",
    "Tapınak", "Üniversite", "Hayvanat Bahçesi", "Lunapark", "Sanat Müzesi",
    "Fırın", "Berber", "Bowling Salonu", "Kafe", "Kamp Alanı", "Şato",
    "Mağara", "Mezarlık", "Kilise", "Sirk", "Komedi Kulübü", "Konser Salonu",
    "İnşaat Alanı", "Mahkeme", "Diş Hekimi", "Çöl", "Fabrika", "Çiftlik",
    "İtfaiye", "Balıkçı Köyü", "Orman", "Garaj", "Spor Salonu", "Liman",
    "Perili Ev", "Hapishane", "Caz Kulübü", "Hurdalık", "Laboratuvar",
    "Kütüphane", "Deniz Feneri", "Alışveriş Merkezi", "Köşk", "Marina",
    "Pazar", "Manastır", "Morg", "Motel", "Dağ", "Haber Odası", "Ofis",
    "Opera Binası", "Yetimhane", "Park", "Eczane", "Oyun Parkı", "Cezaevi",
    "Meyhane", "Taş Ocağı", "Yarış Pisti", "Radyo İstasyonu", "Çiftlik",
    "Huzurevi", "Çatı", "Harabe", "Kuaför", "Kereste Fabrikası",
    "Kayak Merkezi", "Gökdelen", "Stadyum", "Sokak", "Gece Kulübü",
    "Taverna", "Tiyatro", "Oyuncak Mağazası", "Tren İstasyonu", "Tünel",
    "Bağ", "Depo", "Düğün", "Atölye",
]

# 原始清單有重複項目，保留第一次出現的順序
LOCATIONS_TR = list(dict.fromkeys(_LOCATIONS_TR_RAW))

CATALOGS = {
    "en": LOCATIONS_EN,
    "tr": LOCATIONS_TR,
}


def get_location_catalog(locale: str = "en") -> List[str]:
    """
    取得指定語系的地點題庫

    異常：
        InvalidArgument: 不支援的語系
    """
    catalog = CATALOGS.get((locale or "").lower())
    if catalog is None:
        raise InvalidArgument(f"Unsupported location locale: {locale}")
    return list(catalog)
