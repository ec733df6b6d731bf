from __future__ import annotations

SEED_WORDS: dict[str, tuple[str, ...]] = {
    "Hewan": (
        "Ayam", "Angsa", "Anjing", "Bebek", "Beruang", "Burung", "Cicak", "Cumi", "Domba", "Dolfin",
        "Elang", "Flamingo", "Gajah", "Gorila", "Harimau", "Hamster", "Ikan", "Iguana", "Jerapah",
        "Jaguar", "Kucing", "Kuda", "Kambing", "Lumba", "Landak", "Monyet", "Macan", "Naga", "Nyamuk",
        "Orang", "Otter", "Panda", "Pinguin", "Quail", "Rusa", "Sapi", "Semut", "Singa", "Tikus",
        "Tupai", "Ular", "Udang", "Viper", "Walrus", "Xenops", "Yak", "Zebra",
    ),
    "Buah": (
        "Apel", "Anggur", "Alpukat", "Belimbing", "Buah Naga", "Ceri", "Cranberry", "Durian", "Delima",
        "Elderberry", "Fig", "Grape", "Gooseberry", "Honeydew", "Jambu", "Jeruk", "Kiwi", "Kelapa",
        "Kurma", "Lemon", "Leci", "Mangga", "Melon", "Nanas", "Nangka", "Orange", "Pepaya", "Pisang",
        "Pir", "Quince", "Rambutan", "Strawberry", "Salak", "Tomat", "Ubi", "Vanilla", "Watermelon",
        "Ximenia", "Yuzu", "Zaitun",
    ),
    "Negara": (
        "Amerika", "Australia", "Argentina", "Brasil", "Belanda", "Belgia", "China", "Chili", "Denmark",
        "Dominika", "Estonia", "Ekuador", "Finlandia", "Filipina", "Georgia", "Ghana", "Honduras",
        "Haiti", "India", "Indonesia", "Jepang", "Jerman", "Korea", "Kenya", "Laos", "Libya",
        "Malaysia", "Mesir", "Nepal", "Nigeria", "Oman", "Panama", "Peru", "Qatar", "Rusia", "Rwanda",
        "Spanyol", "Swiss", "Thailand", "Turki", "Uruguay", "Uganda", "Vietnam", "Venezuela", "Wales",
        "Yaman", "Zambia", "Zimbabwe",
    ),
}
