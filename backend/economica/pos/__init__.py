# Overview: POS terminal core (cart, discounts, loyalty, checkout) and its service client.
